import asyncio
import json
import unittest

from tests.fakes import annotation, make_image_bytes, make_pipeline, make_settings
from translator.errors import (
    ExternalServiceError,
    InvalidInputError,
    NoTargetScriptError,
    NoTextDetectedError,
    PipelineStage,
    RateLimitedError,
)
from translator.schemas import ClientRequest


def make_request(ruby_mode=False, client_id="10.0.0.1", image_bytes=None, content_type="image/png"):
    return ClientRequest(
        client_id=client_id,
        image_bytes=make_image_bytes() if image_bytes is None else image_bytes,
        content_type=content_type,
        filename="page.png",
        ruby_mode=ruby_mode,
    )


class TestPipelineDefaultMode(unittest.IsolatedAsyncioTestCase):
    async def test_default_mode_scenario(self):
        env = make_pipeline()
        request = make_request()

        response = await env.pipeline.run(request)
        body = response.to_json_dict()

        self.assertEqual(body["japaneseText"], "ABテスト")
        self.assertEqual(body["englishText"], "AB test")
        self.assertTrue(body["processedImageBase64"].startswith("data:image/png;base64,"))
        self.assertNotIn("rubyImageBase64", body)

        self.assertEqual(len(body["textBoxes"]), 2)
        first = body["textBoxes"][0]
        self.assertEqual(first["text"], "AB")
        self.assertEqual(
            (first["left"], first["top"], first["width"], first["height"]), (2, 5, 8, 15)
        )
        self.assertEqual(len(first["bounds"]), 4)
        for box in body["textBoxes"]:
            self.assertNotIn("translatedText", box)

        env.translate.translate.assert_not_called()
        env.openai.chat.completions.create.assert_awaited_once()
        _, kwargs = env.openai.chat.completions.create.call_args
        self.assertTrue(kwargs["messages"][1]["content"].endswith("ABテスト"))

    async def test_idempotent_output(self):
        image = make_image_bytes()

        first = await make_pipeline().pipeline.run(make_request(image_bytes=image))
        second = await make_pipeline().pipeline.run(make_request(image_bytes=image))

        self.assertEqual(
            json.dumps(first.to_json_dict(), ensure_ascii=False),
            json.dumps(second.to_json_dict(), ensure_ascii=False),
        )

    async def test_empty_llm_content_gives_empty_translation(self):
        env = make_pipeline(completion_content="")
        response = await env.pipeline.run(make_request())
        self.assertEqual(response.english_text, "")


class TestPipelineRubyMode(unittest.IsolatedAsyncioTestCase):
    async def test_ruby_mode_with_fragment_failure(self):
        def translate(text, target_language="en", format_="text"):
            if text == "テスト":
                raise RuntimeError("translation backend unavailable")
            return {"translatedText": "AB (translated)"}

        env = make_pipeline(translate_side_effect=translate)

        response = await env.pipeline.run(make_request(ruby_mode=True))
        body = response.to_json_dict()

        self.assertEqual(env.translate.translate.call_count, 2)
        self.assertTrue(body["rubyImageBase64"].startswith("data:image/png;base64,"))
        self.assertNotIn("processedImageBase64", body)

        ab, tesuto = body["textBoxes"]
        self.assertEqual(ab["translatedText"], "AB (translated)")
        self.assertTrue(ab["translationOk"])
        self.assertEqual(tesuto["translatedText"], "テスト")
        self.assertFalse(tesuto["translationOk"])
        self.assertEqual((tesuto["left"], tesuto["width"]), (12, 28))

        env.openai.chat.completions.create.assert_awaited_once()

    async def test_fragments_translated_concurrently(self):
        env = make_pipeline()
        translator = env.pipeline.fragment_translator
        in_flight = 0
        peak = 0

        async def slow_translate(text):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return text.lower()

        translator.translate_text = slow_translate

        await env.pipeline.run(make_request(ruby_mode=True))

        self.assertEqual(peak, 2)


class TestPipelineGates(unittest.IsolatedAsyncioTestCase):
    async def test_rate_limited_second_request(self):
        env = make_pipeline()
        await env.pipeline.run(make_request())

        env.clock.advance(15)
        with self.assertRaises(RateLimitedError) as ctx:
            await env.pipeline.run(make_request())

        self.assertEqual(ctx.exception.wait_seconds, 45)
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertEqual(env.vision.text_detection.call_count, 1)

    async def test_invalid_input_consumes_rate_window(self):
        env = make_pipeline()

        with self.assertRaises(InvalidInputError):
            await env.pipeline.run(make_request(content_type="image/gif"))
        with self.assertRaises(RateLimitedError):
            await env.pipeline.run(make_request())

        env.vision.text_detection.assert_not_called()

    async def test_missing_file(self):
        env = make_pipeline()
        request = make_request()
        request.image_bytes = None

        with self.assertRaises(InvalidInputError) as ctx:
            await env.pipeline.run(request)

        self.assertEqual(ctx.exception.reason, InvalidInputError.MISSING)
        self.assertEqual(ctx.exception.stage, PipelineStage.RATE_CHECKED)

    async def test_oversized_file_rejected_before_ocr(self):
        env = make_pipeline(settings=make_settings(max_file_size_mb=1, verify_image_content=False))

        with self.assertRaises(InvalidInputError) as ctx:
            await env.pipeline.run(make_request(image_bytes=b"\0" * (1024 * 1024 + 1)))

        self.assertEqual(ctx.exception.reason, InvalidInputError.TOO_LARGE)
        env.vision.text_detection.assert_not_called()

    async def test_no_text_detected(self):
        env = make_pipeline(annotations=[])

        with self.assertRaises(NoTextDetectedError):
            await env.pipeline.run(make_request())

        env.openai.chat.completions.create.assert_not_awaited()

    async def test_no_japanese_text_skips_translation(self):
        env = make_pipeline(
            annotations=[
                annotation("Hello world", [(0, 0), (10, 0), (10, 10), (0, 10)]),
                annotation("Hello", [(0, 0), (5, 0), (5, 10), (0, 10)]),
            ]
        )

        with self.assertRaises(NoTargetScriptError) as ctx:
            await env.pipeline.run(make_request(ruby_mode=True))

        self.assertEqual(ctx.exception.stage, PipelineStage.OCR_DONE)
        env.translate.translate.assert_not_called()
        env.openai.chat.completions.create.assert_not_awaited()

    async def test_ocr_failure_is_fatal(self):
        env = make_pipeline()
        env.vision.text_detection.side_effect = RuntimeError("403 PERMISSION_DENIED")

        with self.assertRaises(ExternalServiceError) as ctx:
            await env.pipeline.run(make_request())

        self.assertEqual(ctx.exception.kind, ExternalServiceError.AUTH)
        self.assertEqual(ctx.exception.stage, PipelineStage.VALIDATED)
        env.openai.chat.completions.create.assert_not_awaited()

    async def test_completion_failure_is_fatal(self):
        env = make_pipeline()
        env.openai.chat.completions.create.side_effect = RuntimeError("server overloaded")

        with self.assertRaises(ExternalServiceError) as ctx:
            await env.pipeline.run(make_request(ruby_mode=True))

        self.assertEqual(ctx.exception.service, ExternalServiceError.COMPLETION)
        self.assertEqual(ctx.exception.stage, PipelineStage.FRAGMENT_TRANSLATED)


if __name__ == "__main__":
    unittest.main()
