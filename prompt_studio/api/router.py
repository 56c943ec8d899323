"""Main API router — aggregates all endpoint modules."""

from fastapi import APIRouter

from prompt_studio.api.branches import router as branches_router
from prompt_studio.api.datasets import router as datasets_router
from prompt_studio.api.experiments import router as experiments_router
from prompt_studio.api.llm import router as llm_router
from prompt_studio.api.prompts import router as prompts_router
from prompt_studio.api.session import router as session_router
from prompt_studio.api.versions import router as versions_router

api_router = APIRouter()

api_router.include_router(prompts_router, prefix="/prompts", tags=["prompts"])
api_router.include_router(versions_router, prefix="/prompts", tags=["versions"])
api_router.include_router(branches_router, prefix="/prompts", tags=["branches"])
api_router.include_router(datasets_router, prefix="/prompts", tags=["datasets"])
api_router.include_router(experiments_router, prefix="/prompts", tags=["experiments"])
api_router.include_router(llm_router, tags=["llm"])
api_router.include_router(session_router, tags=["settings"])
