from __future__ import annotations

import uuid

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.enums import AccountRole
from wallet_service.accounts.models import Account
from wallet_service.core.constants import USER_ID_HEADER
from wallet_service.db.dependencies import get_db_session


async def get_current_account(
    session: AsyncSession = Depends(get_db_session),
    current_user_id: uuid.UUID = Header(
        ...,
        alias=USER_ID_HEADER,
        convert_underscores=False,
        description="Authenticated user identifier supplied by the gateway",
    ),
) -> Account:
    account = await session.get(Account, current_user_id)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authenticated user not found",
        )
    if not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive"
        )
    return account


async def require_admin(
    current_account: Account = Depends(get_current_account),
) -> Account:
    if current_account.role is not AccountRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Administrator role required"
        )
    return current_account
