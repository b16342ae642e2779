from typing import Any, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lib.logger import Logger
from blueprint_qa.configs import constants
from blueprint_qa.models.provider_models import GeminiAnalysisConfig

logger = Logger.get_logger(__name__)


class Settings(BaseSettings):
    PROJECT_NAME: str = "blueprint-qa"
    API_PREFIX: str = "/api"
    ENVIRONMENT_NAME: Literal["local", "test", "dev", "prod"] = "local"

    # FastAPI configuration
    allowed_hosts: list[str] = ["*"]

    # Provider selection
    ANALYSIS_PROVIDER: Optional[Literal["gemini", "mock"]] = None
    MOCK_ANALYSIS: bool = False

    # Gemini configuration
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-3-flash-preview"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=2.0)
    GEMINI_MAX_RETRIES: int = Field(default=3, ge=0)
    GEMINI_INITIAL_BACKOFF_SECONDS: float = Field(default=2.0, ge=0.0)
    # No socket timeout unless explicitly configured; the batch deadline bounds latency.
    GEMINI_REQUEST_TIMEOUT_SECONDS: Optional[float] = Field(default=None, gt=0)

    # Analysis pipeline
    MAX_PAGES: int = Field(default=constants.MAX_PAGES, gt=0)
    UNRECOGNIZED_CONTENT_THRESHOLD: float = Field(default=constants.UNRECOGNIZED_CONTENT_THRESHOLD, ge=0.0, le=1.0)
    ANALYSIS_MAX_CONCURRENCY: Optional[int] = Field(default=None, gt=0)
    ANALYSIS_DEADLINE_SECONDS: Optional[float] = Field(default=None, gt=0)

    # OpenTelemetry Configuration
    OTEL_EXPORTER_OTLP_ENDPOINT: str = ""
    OTEL_TRACING_ENABLED: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def fastapi_kwargs(self) -> dict[str, Any]:
        """Get FastAPI initialization kwargs."""
        return {"title": "Blueprint QA Analysis", "version": "0.1.0"}

    @property
    def use_mock_provider(self) -> bool:
        """Explicit mock selection or the mock flag wins over credential presence."""
        return self.ANALYSIS_PROVIDER == "mock" or self.MOCK_ANALYSIS

    def get_gemini_config(self) -> GeminiAnalysisConfig:
        """Group the live provider settings into the config the provider consumes."""
        return GeminiAnalysisConfig(
            model_id=self.GEMINI_MODEL,
            base_url=self.GEMINI_BASE_URL,
            temperature=self.GEMINI_TEMPERATURE,
            max_retries=self.GEMINI_MAX_RETRIES,
            initial_backoff_seconds=self.GEMINI_INITIAL_BACKOFF_SECONDS,
            timeout_seconds=self.GEMINI_REQUEST_TIMEOUT_SECONDS,
        )


try:
    settings = Settings()
except Exception as e:
    logger.error(f"Failed to load settings: {str(e)}")
    raise
