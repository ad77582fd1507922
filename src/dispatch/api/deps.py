"""Shared route dependencies and error translation."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, Request, status

from ..errors import ConflictError, DispatchError, NotFoundError
from ..services.engine import DispatchEngine

logger = logging.getLogger(__name__)


def get_engine(request: Request) -> DispatchEngine:
    return request.app.state.engine


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Map dispatch errors raised inside the block to HTTP responses."""

    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ConflictError as exc:
        detail: dict = {"message": str(exc)}
        reason = getattr(exc, "reason", None)
        if reason:
            detail["reason"] = reason
        conflict_order_id = getattr(exc, "conflict_order_id", None)
        if conflict_order_id:
            detail["conflict_order_id"] = conflict_order_id
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from exc
    except DispatchError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(f"Failed to {action}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}: {exc}",
        ) from exc
