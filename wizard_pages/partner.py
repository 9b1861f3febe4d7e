"""Partner onboarding wizard: three steps with pydantic field schemas."""

from __future__ import annotations

from typing import Any, Final, Mapping

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from core.errors import StepValidationError
from wizard.engine import WizardConfig
from wizard.step_registry import StepDefinition
from wizard.types import CompletionCallback


class _StepSchema(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class PartnerInfo(_StepSchema):
    """Business details of the partner."""

    type: str = Field(min_length=1)
    unified_number: str = Field(min_length=1)
    payout_per_parcel: float = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()


class RepresentativeInfo(_StepSchema):
    """Person representing the partner."""

    name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    job_title: str = Field(min_length=1)
    id_number: str | None = None
    email: EmailStr


class BankAccountInfo(_StepSchema):
    """Payout bank account."""

    account_holder_name: str = Field(min_length=1)
    bank_name: str = Field(min_length=1)
    account_number: str = Field(min_length=1)
    iban: str = Field(min_length=15, max_length=34)
    company_account: bool = False


SUPPORTED_CURRENCIES: Final[frozenset[str]] = frozenset({"EGP", "SAR", "AED", "USD", "EUR"})

PARTNER_DEFAULTS: Final[Mapping[str, Any]] = {
    "type": "convenience store",
    "unified_number": "",
    "payout_per_parcel": 1.0,
    "currency": "EGP",
    "name": "",
    "phone_number": "",
    "job_title": "",
    "id_number": "",
    "email": "",
    "account_holder_name": "",
    "bank_name": "",
    "account_number": "",
    "iban": "",
    "company_account": False,
}


async def validate_partner_info(data: Mapping[str, Any]) -> bool:
    currency = str(data.get("currency") or "").strip().upper()
    if currency not in SUPPORTED_CURRENCIES:
        raise StepValidationError(field_errors={"currency": f"Unsupported currency '{currency}'"})
    return True


async def validate_bank_account(data: Mapping[str, Any]) -> bool:
    # Personal accounts must belong to the representative; company accounts may differ.
    holder = str(data.get("account_holder_name") or "").strip().casefold()
    representative = str(data.get("name") or "").strip().casefold()
    if holder and representative and holder != representative and not data.get("company_account"):
        raise StepValidationError(
            field_errors={"account_holder_name": "Account holder must match the representative"},
        )
    return True


PARTNER_STEPS: Final[tuple[StepDefinition, ...]] = (
    StepDefinition(
        id="partner",
        title="Partner",
        description="Business type, registration and payout terms.",
        field_keys=frozenset(PartnerInfo.model_fields),
        validate=validate_partner_info,
        schema=PartnerInfo,
    ),
    StepDefinition(
        id="representative",
        title="Representative",
        description="Who signs on behalf of the partner.",
        field_keys=frozenset(RepresentativeInfo.model_fields),
        schema=RepresentativeInfo,
    ),
    StepDefinition(
        id="bank_account",
        title="Bank account",
        description="Where payouts are sent.",
        field_keys=frozenset(BankAccountInfo.model_fields),
        validate=validate_bank_account,
        schema=BankAccountInfo,
    ),
)


def build_partner_config(
    on_complete: CompletionCallback | None = None,
    **overrides: Any,
) -> WizardConfig:
    """Return a :class:`WizardConfig` for the partner onboarding flow."""

    options: dict[str, Any] = {
        "steps": PARTNER_STEPS,
        "default_values": dict(PARTNER_DEFAULTS),
        "on_complete": on_complete,
        "storage_key": "partner-onboarding",
    }
    options.update(overrides)
    return WizardConfig(**options)


__all__ = [
    "BankAccountInfo",
    "PARTNER_DEFAULTS",
    "PARTNER_STEPS",
    "PartnerInfo",
    "RepresentativeInfo",
    "SUPPORTED_CURRENCIES",
    "build_partner_config",
    "validate_bank_account",
    "validate_partner_info",
]
