from fastapi import APIRouter

from blueprint_qa.api.routes import analysis, info

api_router = APIRouter()
api_router.include_router(info.info_router)
api_router.include_router(analysis.analysis_router)
