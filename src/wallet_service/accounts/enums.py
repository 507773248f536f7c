from __future__ import annotations

from enum import StrEnum


class KycStatus(StrEnum):
    """Identity verification state, owned by the KYC review system."""

    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AccountRole(StrEnum):
    """Roles recognised by the admin gate."""

    USER = "USER"
    ADMIN = "ADMIN"
