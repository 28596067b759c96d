from fastapi import APIRouter

from approval_queue.api.v1 import queue

api_router = APIRouter()

api_router.include_router(queue.router, prefix="/queue", tags=["queue"])
