from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


REQUIRED_SETTINGS = (
    "SONARQUBE_URL",
    "SONARQUBE_TOKEN",
    "SERVICENOW_URL",
    "SERVICENOW_CLIENT_ID",
    "SERVICENOW_CLIENT_SECRET",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    SONARQUBE_URL: str = ""
    SONARQUBE_TOKEN: str = ""

    SERVICENOW_URL: str = ""
    SERVICENOW_CLIENT_ID: str = ""
    SERVICENOW_CLIENT_SECRET: str = ""
    SERVICENOW_INCIDENT_UI_PATH: str = "nav_to.do?uri=incident.do?sys_id="

    SMTP_HOST: str = ""
    SMTP_PORT: int = 0
    SMTP_SECURE: bool = False
    SMTP_USER: str = ""
    SMTP_PASS: str = ""
    EMAIL_FROM: str = ""
    EMAIL_TO: str = ""

    RETRY_BASE_DELAY_MS: int = 500
    RETRY_BACKOFF_FACTOR: float = 2.0
    RETRY_JITTER_MS: int = 100

    LOG_LEVEL: str = "INFO"
    PORT: int = 3000

    @field_validator("SONARQUBE_URL", "SERVICENOW_URL")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def missing_required(self) -> List[str]:
        """Names of required settings that are unset or empty."""
        return [name for name in REQUIRED_SETTINGS if not getattr(self, name)]

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST and self.EMAIL_FROM and self.EMAIL_TO)


settings = Settings()
