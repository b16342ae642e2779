import uuid

from fastapi import APIRouter, status
from starlette_context import context
from starlette_context.header_keys import HeaderKeys

from blueprint_qa.dependencies.providers import AnalysisOrchestratorDep, LoggerDep
from blueprint_qa.models.analysis_models import AnalyzeRequest, DocumentResult

analysis_router = APIRouter(tags=["Analysis"])

__all__ = ["analysis_router"]


def _current_request_id() -> str:
    """Request id set by the request-id middleware plugin, or a fresh one outside a request context."""
    if context.exists():
        request_id = context.get(HeaderKeys.request_id)
        if request_id:
            return str(request_id)
    return str(uuid.uuid4())


@analysis_router.post(
    "/analyze",
    response_model=DocumentResult,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def analyze_document(
    request: AnalyzeRequest,
    orchestrator: AnalysisOrchestratorDep,
    logger_instance: LoggerDep,
) -> DocumentResult:
    """
    Analyze the rendered pages of a blueprint document.

    Every page is checked against the QA criteria concurrently. A single failing page
    is reported in the result; only an invalid batch, a provider configuration failure
    or a document whose every page failed is rejected.
    """
    request_id = _current_request_id()
    logger_instance.debug("Analysis request accepted", request_id=request_id, page_count=len(request.pages))
    return await orchestrator.analyze_document(request.pages, request_id=request_id)
