from fastapi import APIRouter

from .chat import router as chat_router
from .flow import router as flow_router
from .health import router as health_router
from .thinking import router as thinking_router
from .user_attributes import router as user_attributes_router
from .workflow import router as workflow_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(chat_router)
api_router.include_router(thinking_router)
api_router.include_router(user_attributes_router)
api_router.include_router(workflow_router)
api_router.include_router(flow_router)
