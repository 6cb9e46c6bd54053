import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from PIL import Image

from tests.fakes import make_image_bytes, make_pipeline, make_settings
from translator.main import app, get_client_id, get_pipeline


class ApiTestCase(unittest.TestCase):
    settings_overrides: dict = {}

    def setUp(self):
        self.env = make_pipeline(settings=make_settings(**self.settings_overrides))
        app.dependency_overrides[get_pipeline] = lambda: self.env.pipeline
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def upload(self, ruby_mode=None, content=None, content_type="image/png", headers=None):
        files = {"file": ("page.png", content or make_image_bytes(), content_type)}
        data = {} if ruby_mode is None else {"rubyMode": ruby_mode}
        return self.client.post(
            "/api/translate",
            files=files,
            data=data,
            headers=headers or {"X-Forwarded-For": "203.0.113.7"},
        )


class TestTranslateEndpoint(ApiTestCase):
    def test_default_mode(self):
        resp = self.upload()

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["japaneseText"], "ABテスト")
        self.assertEqual(body["englishText"], "AB test")
        self.assertIn("processedImageBase64", body)
        self.assertNotIn("rubyImageBase64", body)
        self.assertEqual([b["text"] for b in body["textBoxes"]], ["AB", "テスト"])
        # Японский текст не экранируется
        self.assertIn("ABテスト".encode("utf-8"), resp.content)

    def test_ruby_mode(self):
        resp = self.upload(ruby_mode="true")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertIn("rubyImageBase64", body)
        self.assertNotIn("processedImageBase64", body)
        self.assertEqual(body["textBoxes"][1]["translatedText"], "<テスト>")

    def test_ruby_mode_only_for_literal_true(self):
        resp = self.upload(ruby_mode="yes")
        self.assertIn("processedImageBase64", resp.json())

    def test_rate_limited(self):
        self.assertEqual(self.upload().status_code, 200)
        self.env.clock.advance(20)

        resp = self.upload()

        self.assertEqual(resp.status_code, 429)
        self.assertEqual(resp.json()["waitTime"], 40)
        self.assertIn("40 seconds", resp.json()["error"])
        self.assertEqual(resp.headers["Retry-After"], "40")

    def test_missing_file(self):
        resp = self.client.post(
            "/api/translate",
            data={"rubyMode": "false"},
            headers={"X-Real-IP": "198.51.100.2"},
        )

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "No file uploaded", "code": "invalid_input.missing"})

    def test_text_field_instead_of_file(self):
        resp = self.client.post(
            "/api/translate",
            data={"file": "not-a-file"},
            headers={"X-Forwarded-For": "203.0.113.7"},
        )

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "No file uploaded", "code": "invalid_input.missing"})
        # Запрос прошёл через rate limiter
        self.assertEqual(self.upload().status_code, 429)

    def test_pixel_bomb_rejected(self):
        with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
            resp = self.upload(content=make_image_bytes("PNG", size=(64, 64), mode="1"))

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "invalid_input.bad_type")
        self.env.vision.text_detection.assert_not_called()

    def test_wrong_type(self):
        resp = self.upload(content_type="image/gif")

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Only JPG and PNG files are allowed")

    def test_no_text_found(self):
        self.env.vision.text_detection.return_value.text_annotations = []
        resp = self.upload()

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "no_text")

    def test_quota_error_message(self):
        self.env.openai.chat.completions.create.side_effect = RuntimeError(
            "Error code: 429 - You exceeded your current quota"
        )

        resp = self.upload()

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["error"], "API quota exceeded. Please try again later.")

    def test_generic_error_hides_details(self):
        self.env.vision.text_detection.side_effect = RuntimeError("internal host db-7 refused")

        resp = self.upload()

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["error"], "Translation failed")
        self.assertNotIn("db-7", resp.text)

    def test_unexpected_exception_returns_500(self):
        self.env.pipeline.run = None  # TypeError при вызове

        resp = self.upload()

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Translation failed", "code": "internal_error"})


class TestOversizedUpload(ApiTestCase):
    settings_overrides = {"max_file_size_mb": 1, "verify_image_content": False}

    def test_read_is_bounded_by_limit(self):
        limit = 1024 * 1024
        with patch.object(self.env.pipeline, "run", wraps=self.env.pipeline.run) as run:
            resp = self.upload(content=b"\0" * (3 * limit))

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "invalid_input.too_large")
        request = run.call_args.args[0]
        self.assertEqual(len(request.image_bytes), limit + 1)


class TestStrictClientIdentification(ApiTestCase):
    settings_overrides = {"reject_unidentified_clients": True}

    def test_unidentified_client_rejected(self):
        resp = self.upload(headers={"User-Agent": "test"})

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "client_unidentified")
        self.env.vision.text_detection.assert_not_called()

    def test_identified_client_allowed(self):
        self.assertEqual(self.upload().status_code, 200)


class TestServiceEndpoints(ApiTestCase):
    def test_health_reports_providers(self):
        resp = self.client.get("/health")

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["providers"], {"vision": True, "translation": True, "openai": True})
        self.assertEqual(body["config"]["max_file_size_mb"], 10)

    def test_rate_limit_stats(self):
        self.upload()
        resp = self.client.get("/rate-limit/stats")
        self.assertEqual(resp.json()["tracked_clients"], 1)


class TestClientId(unittest.TestCase):
    def _request(self, headers):
        from starlette.requests import Request

        raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
        return Request({"type": "http", "headers": raw})

    def test_forwarded_for_first_address(self):
        request = self._request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "1.1.1.1"})
        self.assertEqual(get_client_id(request), "203.0.113.7")

    def test_real_ip_fallback(self):
        self.assertEqual(get_client_id(self._request({"X-Real-IP": "1.1.1.1"})), "1.1.1.1")

    def test_unknown(self):
        self.assertEqual(get_client_id(self._request({})), "unknown")


if __name__ == "__main__":
    unittest.main()
