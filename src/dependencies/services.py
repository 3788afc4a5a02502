"""FastAPI dependencies for process-wide services.

Both services are created lazily and cached for the process. Tests replace
them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from core.config import get_settings
from services.gptbots import GPTBotsClient
from services.thinking_store import ThinkingStore


@lru_cache
def get_thinking_store() -> ThinkingStore:
    settings = get_settings()
    return ThinkingStore(ttl_seconds=settings.THINKING_TTL_SECONDS)


@lru_cache
def get_gptbots_client() -> GPTBotsClient:
    settings = get_settings()
    return GPTBotsClient(
        base_url=settings.GPTBOTS_BASE_URL,
        agent_key=settings.GPTBOTS_AGENT_KEY,
        workflow_key=settings.GPTBOTS_WORKFLOW_KEY,
        verify_ssl=settings.GPTBOTS_VERIFY_SSL,
        timeout=settings.GPTBOTS_TIMEOUT_SECONDS,
    )


async def close_gptbots_client() -> None:
    """Close the cached client, if one was created."""
    if get_gptbots_client.cache_info().currsize:
        await get_gptbots_client().aclose()
        get_gptbots_client.cache_clear()


ThinkingStoreDep = Annotated[ThinkingStore, Depends(get_thinking_store)]
GPTBotsClientDep = Annotated[GPTBotsClient, Depends(get_gptbots_client)]
