"""
Сервис перевода — FastAPI приложение.

Эндпоинты:
    POST /api/translate — загрузка изображения и перевод японского текста
    GET  /health — проверка работоспособности и конфигурации
    GET  /rate-limit/stats — статистика rate limiter

Запуск:
    uvicorn translator.main:app --host 0.0.0.0 --port 8000
"""

import json
import logging
from typing import Optional, Union

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from translator.config import settings
from translator.errors import PipelineError, UnidentifiedClientError
from translator.schemas import ClientRequest, ErrorResponse, TranslateResponse
from translator.services.pipeline import TranslationPipeline

# Настройка логгера
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [Translator] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


class UnicodeJSONResponse(JSONResponse):
    """JSON ответ с нормальным отображением японского текста (без \\uXXXX экранирования)."""

    def render(self, content) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


# FastAPI приложение
app = FastAPI(
    title="Japanese Image Translator",
    description="Распознавание японского текста на изображениях и перевод на английский",
    version="1.0.0",
    default_response_class=UnicodeJSONResponse,
)

# Один пайплайн на процесс: rate limiter должен быть общим для всех запросов
_pipeline: Optional[TranslationPipeline] = None


def get_pipeline() -> TranslationPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = TranslationPipeline.from_settings(settings)
    return _pipeline


def get_client_id(request: Request) -> str:
    """
    Определяет идентификатор клиента для rate limit.

    Порядок: первый адрес из X-Forwarded-For, затем X-Real-IP,
    иначе "unknown" (все неопознанные клиенты делят одно окно).

    Args:
        request: входящий запрос

    Returns:
        str: идентификатор клиента
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    return UNKNOWN_CLIENT


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    headers = None
    if exc.status_code == 429:
        headers = {"Retry-After": str(exc.wait_time())}

    return UnicodeJSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
        headers=headers,
    )


@app.get("/health")
async def health_check(pipeline: TranslationPipeline = Depends(get_pipeline)) -> dict:
    """
    Проверка работоспособности сервиса.

    Показывает, настроены ли учётные данные провайдеров,
    и текущую конфигурацию (без секретов).

    Returns:
        dict: статус сервиса и конфигурация
    """
    config = pipeline.settings
    providers = {
        "vision": pipeline.ocr.is_configured,
        "translation": pipeline.fragment_translator.is_configured,
        "openai": pipeline.llm_translator.is_configured,
    }

    return {
        "status": "ok" if all(providers.values()) else "degraded",
        "service": "translator",
        "version": "1.0.0",
        "providers": providers,
        "config": {
            "max_file_size_mb": config.max_file_size_mb,
            "allowed_content_types": config.allowed_content_types,
            "rate_limit_cooldown_seconds": config.rate_limit_cooldown_seconds,
            "openai_model": config.openai_model,
            "target_language": config.target_language,
        },
    }


@app.get("/rate-limit/stats")
async def rate_limit_stats(pipeline: TranslationPipeline = Depends(get_pipeline)) -> dict:
    """
    Статистика rate limiter.

    Полезно для мониторинга использования памяти.
    """
    return pipeline.rate_limiter.stats()


@app.post(
    "/api/translate",
    response_model=TranslateResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def translate_image(
    request: Request,
    file: Union[UploadFile, str, None] = File(default=None, description="Изображение JPG или PNG"),
    rubyMode: Optional[str] = Form(default=None, description='"true" — перевод каждого фрагмента'),
    pipeline: TranslationPipeline = Depends(get_pipeline),
):
    """
    Распознаёт японский текст на изображении и переводит его.

    Args:
        request: входящий запрос (для определения клиента)
        file: изображение (multipart/form-data)
        rubyMode: "true" — режим ruby (перевод каждого фрагмента)

    Returns:
        TranslateResponse: текст, перевод, текстовые блоки и изображение

    Raises:
        PipelineError: обрабатывается pipeline_error_handler
    """
    client_id = get_client_id(request)
    if client_id == UNKNOWN_CLIENT and pipeline.settings.reject_unidentified_clients:
        raise UnidentifiedClientError()

    # Текстовое поле вместо файла считается отсутствующим файлом
    upload = None if isinstance(file, str) else file

    try:
        # Читаем не больше лимита + 1 байт: этого достаточно для проверки размера
        image_bytes = (
            await upload.read(pipeline.settings.max_file_size_bytes + 1)
            if upload is not None
            else None
        )
        client_request = ClientRequest(
            client_id=client_id,
            image_bytes=image_bytes,
            content_type=upload.content_type if upload is not None else None,
            filename=upload.filename if upload is not None else None,
            ruby_mode=rubyMode == "true",
        )

        result = await pipeline.run(client_request)
    except PipelineError:
        raise
    except Exception as e:
        logger.exception(f"Ошибка обработки запроса: {e}")
        return UnicodeJSONResponse(
            status_code=500,
            content=ErrorResponse(error="Translation failed", code="internal_error").to_json_dict(),
        )

    return UnicodeJSONResponse(content=result.to_json_dict())


if __name__ == "__main__":
    import uvicorn

    port = settings.port
    logger.info(f"Запуск сервиса перевода на порту {port}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
