"""
Учётные данные сервисного аккаунта Google для Vision и Translation API.
"""

from typing import Optional

from google.oauth2 import service_account

from translator.config import load_google_credentials


def build_google_credentials(
    credentials_json: Optional[str],
) -> tuple[service_account.Credentials, Optional[str]]:
    """
    Создаёт объект учётных данных из JSON сервисного аккаунта.

    Args:
        credentials_json: содержимое GOOGLE_APPLICATION_CREDENTIALS_JSON

    Returns:
        tuple: (Credentials, project_id)

    Raises:
        ValueError: если учётные данные не заданы или некорректны
    """
    info = load_google_credentials(credentials_json)
    credentials = service_account.Credentials.from_service_account_info(info)
    return credentials, info.get("project_id")
