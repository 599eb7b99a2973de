from __future__ import annotations

from typing import Callable, TypeVar

from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session

from settleup.core.config import settings
from settleup.core.errors import ConflictError
from settleup.core.logging_setup import logger

T = TypeVar("T")


def run_with_retry(session: Session, mutation: Callable[[], T], *, attempts: int | None = None) -> T:
    """Run a load-mutate-commit callable, retrying when a versioned row went stale.

    ``mutation`` must load the rows it changes itself, so every retry starts
    from the committed state left by the concurrent writer.
    """
    max_attempts = max(1, attempts or settings.concurrency_max_retries)
    for attempt in range(1, max_attempts + 1):
        try:
            return mutation()
        except StaleDataError as exc:
            session.rollback()
            logger.warning("Concurrent update detected (attempt %s/%s): %s", attempt, max_attempts, exc)
    raise ConflictError("The record was modified by another request, please retry")
