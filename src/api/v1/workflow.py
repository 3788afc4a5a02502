from __future__ import annotations

from fastapi import APIRouter

from dependencies.services import GPTBotsClientDep
from schemas.workflow import WorkflowRequest, WorkflowResult


router = APIRouter(tags=["workflow"])


@router.post("/workflow", response_model=WorkflowResult)
async def invoke_workflow(
    payload: WorkflowRequest, client: GPTBotsClientDep
) -> WorkflowResult:
    """Submit a card to its workflow and return the interpreted result."""
    return await client.invoke_workflow(payload)
