from __future__ import annotations

from decimal import Decimal
from enum import StrEnum
from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    computed_field,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from wallet_service.core.constants import (
    DEFAULT_ENV_FILE,
    MAX_REFERRAL_LEVELS,
    SECRETS_DIR,
)
from wallet_service.referrals.enums import CommissionType
from wallet_service.withdrawals.enums import PaymentMethod


class Environment(StrEnum):
    """Deployment environments supported by the service."""

    DEVELOPMENT = "development"
    TEST = "test"
    STAGING = "staging"
    PRODUCTION = "production"


class DatabaseSettings(BaseModel):
    """Database connectivity configuration."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("url", "DATABASE_URL", "database_url"),
    )
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: SecretStr = SecretStr("postgres")
    name: str = "wallet"
    echo: bool = False

    @computed_field
    @property
    def dsn(self) -> str:
        """Assemble the SQLAlchemy async DSN."""
        if self.url is not None:
            return self.url

        password = quote_plus(self.password.get_secret_value())
        return (
            f"postgresql+asyncpg://{self.user}:{password}"
            f"@{self.host}:{self.port}/{self.name}"
        )


class SentrySettings(BaseSettings):
    """Sentry error tracking configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SENTRY__",
        extra="ignore",
        case_sensitive=False,
    )

    enabled: bool = True
    dsn: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SENTRY_DSN",
            "sentry__dsn",
        ),
    )
    environment: str | None = None
    release: str | None = None
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    send_default_pii: bool = False
    debug: bool = False


class MethodFeeSchedule(BaseModel):
    """Fee schedule and minimum payout for a single payment rail."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    percentage: Decimal = Field(..., ge=Decimal("0"), le=Decimal("100"))
    fixed: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    minimum: Decimal = Field(..., gt=Decimal("0"))


def _default_fee_schedules() -> dict[PaymentMethod, MethodFeeSchedule]:
    return {
        PaymentMethod.BKASH: MethodFeeSchedule(
            percentage=Decimal("1.5"), minimum=Decimal("5")
        ),
        PaymentMethod.NAGAD: MethodFeeSchedule(
            percentage=Decimal("1.5"), minimum=Decimal("5")
        ),
        PaymentMethod.ROCKET: MethodFeeSchedule(
            percentage=Decimal("1.8"), minimum=Decimal("5")
        ),
        PaymentMethod.BINANCE: MethodFeeSchedule(
            percentage=Decimal("0.5"), minimum=Decimal("20")
        ),
        PaymentMethod.PAYPAL: MethodFeeSchedule(
            percentage=Decimal("2.5"), minimum=Decimal("10")
        ),
    }


class WithdrawalSettings(BaseModel):
    """Business policy for withdrawals.

    The KYC threshold and the cooldown are policy knobs rather than constants,
    so they live here and can be tuned per environment.
    """

    model_config = ConfigDict(extra="ignore")

    kyc_threshold: Decimal = Field(default=Decimal("100"), ge=Decimal("0"))
    cooldown_hours: int = Field(default=24, ge=0)
    points_per_unit: int = Field(default=1000, ge=1)
    default_package_minimum: Decimal = Field(default=Decimal("5"), ge=Decimal("0"))
    estimated_processing_time: str = "1-3 business days"
    methods: dict[PaymentMethod, MethodFeeSchedule] = Field(
        default_factory=_default_fee_schedules
    )


class FallbackReferralLevel(BaseModel):
    """Commission level used when no referral levels have been configured."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    level: int = Field(..., ge=1, le=MAX_REFERRAL_LEVELS)
    commission_type: CommissionType = CommissionType.PERCENTAGE
    commission_value: Decimal = Field(..., ge=Decimal("0"))


def _default_fallback_levels() -> list[FallbackReferralLevel]:
    return [FallbackReferralLevel(level=1, commission_value=Decimal("10"))]


class ReferralSettings(BaseModel):
    """Referral tree traversal and dashboard configuration."""

    model_config = ConfigDict(extra="ignore")

    max_depth: int = Field(default=MAX_REFERRAL_LEVELS, ge=1, le=MAX_REFERRAL_LEVELS)
    dashboard_depth: int = Field(default=3, ge=1, le=MAX_REFERRAL_LEVELS)
    recent_activity_limit: int = Field(default=10, ge=1, le=100)
    base_url: str = "http://localhost:3000"
    signup_path: str = "/register"
    fallback_levels: list[FallbackReferralLevel] = Field(
        default_factory=_default_fallback_levels
    )


class Settings(BaseSettings):
    """Application settings loaded from the environment or secret stores."""

    model_config = SettingsConfigDict(
        env_file=DEFAULT_ENV_FILE,
        env_nested_delimiter="__",
        secrets_dir=SECRETS_DIR,
        extra="ignore",
        validate_default=True,
        case_sensitive=False,
    )

    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False
    log_level: str = "INFO"

    project_name: str = "Wallet Service"
    project_description: str = (
        "Points ledger, withdrawal lifecycle and referral commissions"
    )
    project_version: str = "0.1.0"
    docs_url: str | None = "/docs"
    redoc_url: str | None = "/redoc"
    openapi_url: str = "/openapi.json"

    cors_allow_origins: list[str] = Field(default_factory=list)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)
    withdrawals: WithdrawalSettings = Field(default_factory=WithdrawalSettings)
    referrals: ReferralSettings = Field(default_factory=ReferralSettings)

    @model_validator(mode="after")
    def _normalize(self) -> Settings:
        self.log_level = self.log_level.upper()

        if self.environment in {Environment.DEVELOPMENT, Environment.TEST}:
            self.debug = True

        return self

    @computed_field
    @property
    def is_production(self) -> bool:
        return self.environment is Environment.PRODUCTION


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()
