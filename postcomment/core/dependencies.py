"""FastAPI dependencies shared by the routers.

Authentication happens upstream: the auth gateway validates the token and
forwards the caller as ``X-User-Id`` / ``X-User-Admin`` headers.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from postcomment.core.context import bind_user
from postcomment.core.exceptions import AppError, status_for_error


@dataclass(frozen=True)
class Caller:
    """Already-validated caller identity."""

    user_id: int
    is_admin: bool = False


async def get_current_caller(
    x_user_id: Annotated[int | None, Header()] = None,
    x_user_admin: Annotated[bool, Header()] = False,
) -> Caller:
    """Caller forwarded by the auth gateway; 401 when absent."""
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    bind_user(x_user_id)
    return Caller(user_id=x_user_id, is_admin=x_user_admin)


CurrentCaller = Annotated[Caller, Depends(get_current_caller)]


def handle_app_error(error: AppError) -> HTTPException:
    """Convert an application error to an HTTP exception."""
    return HTTPException(status_code=status_for_error(error), detail=error.message)
