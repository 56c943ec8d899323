"""Server-side proxy to the LLM providers."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from prompt_studio.api.models import LLMProxyRequest
from prompt_studio.core.errors import TransportError
from prompt_studio.core.gateway import LLMGateway, LLMRequest, Provider, get_gateway

logger = structlog.get_logger()
router = APIRouter()


@router.get("/llm")
async def llm_status() -> dict[str, str]:
    return {"message": "LLM API route is working"}


@router.post("/llm")
async def llm_proxy(
    data: LLMProxyRequest,
    gateway: LLMGateway = Depends(get_gateway),
) -> JSONResponse:
    """Forward one completion call. Errors mirror the upstream status."""
    if not data.api_key:
        return JSONResponse({"error": "API key is required"}, status_code=400)
    try:
        provider = Provider(data.provider)
    except ValueError:
        return JSONResponse({"error": "Invalid provider specified"}, status_code=400)

    request = LLMRequest(
        provider=provider,
        model=data.model,
        messages=data.messages,
        temperature=data.temperature,
        max_tokens=data.max_tokens,
        top_p=data.top_p,
        api_key=data.api_key,
    )
    try:
        content = await gateway.complete(request)
    except TransportError as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code or 502)
    return JSONResponse({"content": content})
