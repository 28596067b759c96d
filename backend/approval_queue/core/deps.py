from typing import Annotated

from fastapi import Depends, Header, Request

from approval_queue.services.session import ReviewSession, SessionRegistry
from approval_queue.services.urgent_poller import UrgentApprovalsPoller

DEFAULT_REVIEWER_ID = "default"


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_urgent_poller(request: Request) -> UrgentApprovalsPoller:
    return request.app.state.urgent_poller


async def get_review_session(
    registry: Annotated[SessionRegistry, Depends(get_registry)],
    x_reviewer_id: Annotated[str | None, Header()] = None,
) -> ReviewSession:
    """Return the caller's review session; sessions are never shared between reviewers."""
    return registry.get(x_reviewer_id or DEFAULT_REVIEWER_ID)
