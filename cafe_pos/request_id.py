"""Request correlation ids.

Every request gets one id, taken from ``X-Request-ID`` or minted here. It is
kept in a context variable for the envelope and log lines, and on
``request.state`` so error handlers running outside the middleware can still
find it.
"""
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

REQUEST_ID_HEADER = "X-Request-ID"

_current: ContextVar[str] = ContextVar("cafe_request_id", default="")


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex}"


def get_request_id() -> str:
    rid = _current.get()
    if not rid:
        rid = new_request_id()
        _current.set(rid)
    return rid


def bind_request_id(rid: str) -> None:
    _current.set(rid)


def request_id_for(request: Request) -> str:
    rid = getattr(request.state, "request_id", None) or request.headers.get(REQUEST_ID_HEADER)
    return rid or new_request_id()


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request_id_for(request)
        request.state.request_id = rid
        token = _current.set(rid)
        try:
            response = await call_next(request)
        finally:
            _current.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
