from typing import Optional

import requests

from lib.logger import Logger
from blueprint_qa.configs.settings import Settings
from blueprint_qa.exceptions.error_handler import ConfigurationError
from blueprint_qa.interfaces.analysis_provider import AnalysisProvider
from blueprint_qa.services.providers.gemini_analysis_provider import GeminiAnalysisProvider
from blueprint_qa.services.providers.mock_analysis_provider import MockAnalysisProvider

logger = Logger.get_logger(__name__)

MISSING_API_KEY_MESSAGE = "GEMINI_API_KEY is not configured. Set it in your .env file."


def create_analysis_provider(
    config: Settings, session: Optional[requests.Session] = None
) -> AnalysisProvider:
    """
    Select and build the analysis provider from configuration.

    An explicit "mock" selection or the mock flag wins over credential presence;
    otherwise the live Gemini provider is built and requires an API key.

    Raises:
        ConfigurationError: If the live provider is selected but no API key is set
    """
    if config.use_mock_provider:
        logger.info("Using mock analysis provider")
        return MockAnalysisProvider()

    if not config.GEMINI_API_KEY:
        raise ConfigurationError(MISSING_API_KEY_MESSAGE)

    gemini_config = config.get_gemini_config()
    logger.info("Using Gemini analysis provider", model_id=gemini_config.model_id)
    return GeminiAnalysisProvider(api_key=config.GEMINI_API_KEY, config=gemini_config, session=session)
