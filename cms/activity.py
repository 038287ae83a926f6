"""
Activity recorder.

Routes opt in with ``@records_activity(action, entity_type)``; routers that
carry such routes use ``ActivityRoute`` as their ``route_class``.  The route
wraps the endpoint's request handler: once the handler has produced its
response, a 2xx status appends one ``ActivityLog`` row before the response is
handed back to the server.  Handlers that raise never get this far, so failed
requests leave no trace.

The request's own session is committed first, so the entry never refers to
uncommitted rows.  The audit trail is best-effort: the entry is written in
its own session and any error while writing it is logged and dropped.
"""
import json
import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response
from fastapi.routing import APIRoute

from cms.database import commit_request_session
from cms.services import activity_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityMarker:
    action: str
    entity_type: str
    # The entity is the acting user itself (login, logout, profile edits).
    entity_is_actor: bool = False


def records_activity(action: str, entity_type: str, *, entity_is_actor: bool = False):
    """Mark an endpoint so ``ActivityRoute`` logs its successful calls."""

    def decorator(endpoint: Callable) -> Callable:
        endpoint.__activity__ = ActivityMarker(action, entity_type, entity_is_actor)
        return endpoint

    return decorator


def _as_entity_id(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def resolve_entity_id(request: Request, response: Response, marker: ActivityMarker, user_id: int | None) -> int | None:
    """Body ``id`` first, then the ``id``/``<entity>_id`` path parameter, else None."""
    if marker.entity_is_actor:
        return user_id

    body = getattr(response, "body", None)
    if body:
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            entity_id = _as_entity_id(payload.get("id"))
            if entity_id is not None:
                return entity_id

    path_params = request.path_params
    for name in ("id", f"{marker.entity_type}_id"):
        if name in path_params:
            return _as_entity_id(path_params[name])
    return None


async def record_activity(request: Request, response: Response, marker: ActivityMarker) -> None:
    user = getattr(request.state, "user", None)
    user_id = user.id if user is not None else None
    entity_id = resolve_entity_id(request, response, marker, user_id)
    ip_address = request.client.host if request.client else None

    try:
        async with request.app.state.db.session() as session:
            await activity_service.log_activity(
                session,
                user_id=user_id,
                action=marker.action,
                entity_type=marker.entity_type,
                entity_id=entity_id,
                ip_address=ip_address,
            )
            await session.commit()
    except Exception:
        logger.exception(
            "Failed to record activity action=%r entity=%s:%s user=%s",
            marker.action, marker.entity_type, entity_id, user_id,
        )


class ActivityRoute(APIRoute):
    def get_route_handler(self) -> Callable:
        handler = super().get_route_handler()
        marker: ActivityMarker | None = getattr(self.endpoint, "__activity__", None)
        if marker is None:
            return handler

        async def recording_handler(request: Request) -> Response:
            response = await handler(request)
            if 200 <= response.status_code < 300:
                await commit_request_session(request)
                await record_activity(request, response, marker)
            return response

        return recording_handler
