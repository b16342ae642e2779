"""Dependency injection providers for FastAPI."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from lib.logger import Logger
from blueprint_qa.configs.settings import Settings, settings
from blueprint_qa.interfaces.analysis_provider import AnalysisProvider
from blueprint_qa.services.analysis_orchestrator import AnalysisOrchestrator
from blueprint_qa.services.provider_factory import create_analysis_provider


def _is_test_environment() -> bool:
    """Check if we're running in test environment."""
    return settings.ENVIRONMENT_NAME.lower() == "test"


def get_settings() -> Settings:
    return settings


# Service factories - conditional caching based on environment
def get_logger() -> Logger:
    """Get logger instance."""
    if _is_test_environment():
        return Logger.get_logger(__name__)
    else:
        return _get_cached_logger()


@lru_cache()
def _get_cached_logger() -> Logger:
    """Get cached logger instance (production only)."""
    return Logger.get_logger(__name__)


def get_analysis_provider() -> AnalysisProvider:
    """
    Get analysis provider instance.

    Raises:
        ConfigurationError: If the live provider is selected but not configured
    """
    if _is_test_environment():
        # Fresh instance so tests can change settings between calls
        return create_analysis_provider(settings)
    else:
        return _get_cached_analysis_provider()


@lru_cache()
def _get_cached_analysis_provider() -> AnalysisProvider:
    """Get cached analysis provider instance (production only)."""
    return create_analysis_provider(settings)


def create_analysis_orchestrator(config: Settings = settings) -> AnalysisOrchestrator:
    """Create analysis orchestrator with regular dependency injection (non-FastAPI)."""
    # Provider is resolved lazily so batch validation runs before configuration errors
    return AnalysisOrchestrator(
        provider_resolver=get_analysis_provider,
        max_pages=config.MAX_PAGES,
        unrecognized_threshold=config.UNRECOGNIZED_CONTENT_THRESHOLD,
        max_concurrency=config.ANALYSIS_MAX_CONCURRENCY,
        deadline_seconds=config.ANALYSIS_DEADLINE_SECONDS,
    )


def get_analysis_orchestrator() -> AnalysisOrchestrator:
    """Get analysis orchestrator instance."""
    if _is_test_environment():
        return create_analysis_orchestrator(settings)
    else:
        return _get_cached_analysis_orchestrator()


@lru_cache()
def _get_cached_analysis_orchestrator() -> AnalysisOrchestrator:
    """Get cached analysis orchestrator instance (production only)."""
    return create_analysis_orchestrator(settings)


# Type aliases for dependency injection (FastAPI only)
AnalysisOrchestratorDep = Annotated[AnalysisOrchestrator, Depends(get_analysis_orchestrator)]
LoggerDep = Annotated[Logger, Depends(get_logger)]
