"""Per-request logging context.

Each request carries one immutable ``RequestContext`` in a ContextVar. The
middleware opens it, the caller dependency adds the user id, and the log
processor copies its non-empty fields into every event.
"""

from contextvars import ContextVar
from dataclasses import asdict, dataclass, replace
from typing import Any
from uuid import uuid4


@dataclass(frozen=True)
class RequestContext:
    request_id: str = ""
    user_id: int | None = None
    trace_id: str | None = None

    def as_log_fields(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v not in (None, "")}


_EMPTY = RequestContext()
_current: ContextVar[RequestContext] = ContextVar("request_context", default=_EMPTY)


def begin_request(
    request_id: str | None = None, trace_id: str | None = None
) -> RequestContext:
    """Open the context for a request, generating a request id when absent."""
    context = RequestContext(request_id=request_id or str(uuid4()), trace_id=trace_id)
    _current.set(context)
    return context


def bind_user(user_id: int | None) -> None:
    """Attach the authenticated caller to the current context."""
    _current.set(replace(_current.get(), user_id=user_id))


def current_context() -> RequestContext:
    return _current.get()


def clear_context() -> None:
    """Reset to the empty context once a request is finished."""
    _current.set(_EMPTY)
