from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from approval_queue.clients.approval_service import ApprovalServiceClient
from approval_queue.core.config import settings
from approval_queue.core.errors import (
    BulkOperationInProgressError,
    BulkValidationError,
    DecisionInputError,
    TransportError,
)
from approval_queue.core.logging import setup_logging
from approval_queue.services.session import ReviewSession, SessionRegistry
from approval_queue.services.urgent_poller import UrgentApprovalsPoller

setup_logging()

logger = logging.getLogger(__name__)


def build_registry(client: ApprovalServiceClient) -> SessionRegistry:
    return SessionRegistry(lambda: ReviewSession(client, client, client))


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: one shared HTTP client; sessions and the poller borrow it
    client = ApprovalServiceClient()
    app.state.approval_client = client
    app.state.sessions = build_registry(client)
    app.state.urgent_poller = UrgentApprovalsPoller(client)
    app.state.urgent_poller.start()
    yield
    # Shutdown
    await app.state.urgent_poller.stop()
    await client.aclose()


app = FastAPI(
    title="Quotation Approval Queue",
    version="0.1.0",
    docs_url="/api/docs" if settings.APP_ENV != "production" else None,
    redoc_url="/api/redoc" if settings.APP_ENV != "production" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BulkValidationError)
async def bulk_validation_handler(request: Request, exc: BulkValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": "Please correct the validation errors", "errors": exc.errors},
    )


@app.exception_handler(DecisionInputError)
async def decision_input_handler(request: Request, exc: DecisionInputError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(BulkOperationInProgressError)
async def bulk_in_progress_handler(request: Request, exc: BulkOperationInProgressError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(TransportError)
async def transport_error_handler(request: Request, exc: TransportError):
    logger.warning("Approval service error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ─── Routers ───
from approval_queue.api.v1.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.APP_ENV}
