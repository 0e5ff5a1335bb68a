"""Top-level routers for an agent server."""

from __future__ import annotations

from fastapi import APIRouter

from .endpoints.a2a import router as a2a_router
from .endpoints.chat import router as chat_router
from .endpoints.tasks import router as tasks_router
from .endpoints.tools import router as tools_router

api_router = APIRouter(prefix="/api")
api_router.include_router(chat_router)
api_router.include_router(tasks_router)
api_router.include_router(tools_router)

peer_router = APIRouter()
peer_router.include_router(a2a_router)
