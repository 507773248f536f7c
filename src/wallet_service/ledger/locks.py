"""Per-account serialisation for ledger mutations.

Every balance change runs inside :func:`account_unit_of_work`, which stacks
three guards: an in-process ``asyncio.Lock`` per account, ``SELECT ... FOR
UPDATE`` on the account row where the dialect supports it, and a commit or
rollback of the whole session transaction. A coroutine never holds two
account locks at once.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.models import Account
from wallet_service.core.exceptions import AccountNotFoundError, PersistenceFailureError


@dataclass(slots=True)
class _AccountLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


_ACCOUNT_LOCKS: dict[uuid.UUID, _AccountLock] = {}

logger = structlog.get_logger(__name__)


def _supports_select_for_update(session: AsyncSession) -> bool:
    bind = session.bind
    if bind is None:
        return False
    return bind.dialect.name not in {"sqlite"}


@asynccontextmanager
async def hold_account_lock(account_id: uuid.UUID) -> AsyncIterator[None]:
    """Hold the in-process lock for ``account_id``.

    The registry entry lives only while some coroutine holds or awaits it.
    """

    entry = _ACCOUNT_LOCKS.get(account_id)
    if entry is None:
        entry = _ACCOUNT_LOCKS[account_id] = _AccountLock()
    entry.users += 1
    try:
        async with entry.lock:
            yield
    finally:
        entry.users -= 1
        if entry.users == 0:
            del _ACCOUNT_LOCKS[account_id]


def locked_account_ids() -> frozenset[uuid.UUID]:
    return frozenset(_ACCOUNT_LOCKS)


async def lock_account_row(session: AsyncSession, account_id: uuid.UUID) -> Account:
    """Load the account row with a fresh read, locking it where supported."""

    stmt = (
        select(Account)
        .where(Account.id == account_id)
        .execution_options(populate_existing=True)
    )
    if _supports_select_for_update(session):
        stmt = stmt.with_for_update()

    account = (await session.execute(stmt)).scalar_one_or_none()
    if account is None:
        raise AccountNotFoundError()
    return account


@asynccontextmanager
async def account_unit_of_work(
    session: AsyncSession, account_id: uuid.UUID
) -> AsyncIterator[Account]:
    """Serialise a mutation of ``account_id`` and commit it as one unit.

    Domain errors roll back and propagate unchanged. Storage errors roll back
    and surface as :class:`PersistenceFailureError` with the original cause
    chained.
    """

    async with hold_account_lock(account_id):
        try:
            account = await lock_account_row(session, account_id)
            yield account
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error(
                "ledger_unit_of_work_failed",
                account_id=str(account_id),
                error=str(exc),
            )
            raise PersistenceFailureError() from exc
        except BaseException:
            await session.rollback()
            raise
