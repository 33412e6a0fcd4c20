"""Savepoint scope for paired writes (leave record + leave ledger).

A lifecycle or approval transition touches two rows: the leave request and
the employee's balance. ``paired_write`` runs both inside one SAVEPOINT so
they land together. When anything inside fails the savepoint is rolled back,
which undoes the record write as well, and the failure is surfaced:

  - ``AppException`` (e.g. insufficient balance, lost race) is re-raised as is
  - ``SQLAlchemyError`` becomes ``IntegrityFailure``
  - a failed rollback becomes ``CompensationFailure`` (data may be inconsistent)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from leaveflow.common.exceptions import (
    AppException,
    CompensationFailure,
    IntegrityFailure,
)

logger = logging.getLogger(__name__)


async def _compensate(savepoint: AsyncSessionTransaction, operation: str) -> None:
    try:
        await savepoint.rollback()
    except SQLAlchemyError as exc:
        logger.error(
            "Rollback of %s failed; leave record and balance may disagree: %s",
            operation,
            exc,
        )
        raise CompensationFailure(
            f"{operation} failed and could not be rolled back. "
            "The leave record and balance may be inconsistent."
        ) from exc


@asynccontextmanager
async def paired_write(
    db: AsyncSession,
    operation: str,
) -> AsyncIterator[AsyncSessionTransaction]:
    """Run the body inside a SAVEPOINT; roll it back on any failure."""
    savepoint = await db.begin_nested()
    try:
        yield savepoint
        await savepoint.commit()
    except AppException:
        await _compensate(savepoint, operation)
        raise
    except SQLAlchemyError as exc:
        await _compensate(savepoint, operation)
        logger.warning("%s rolled back after a write failure: %s", operation, exc)
        raise IntegrityFailure(
            f"{operation} failed and was rolled back; no changes were applied."
        ) from exc
