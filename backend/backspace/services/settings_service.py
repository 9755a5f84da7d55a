from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from ..extensions import db
from ..models import AppSetting
from .concurrency import run_with_retry


class SettingsError(ValueError):
    pass


class SettingsValidationError(SettingsError):
    pass


DEFAULT_SETTINGS: dict[str, Any] = {
    "currency": "EGP",
    "currency_symbol": "EGP",
    "tax": {"enabled": False, "rate": 0},
    # value is a percentage of the session + inventory subtotal
    "discount": {"enabled": False, "value": 0, "label": ""},
    # 0 = due the same day the invoice is created
    "invoice_due_days": 0,
    # None = unconstrained debt; otherwise the most a customer may owe (piasters)
    "debt_limit": None,
}


@dataclass(frozen=True)
class TaxSettings:
    enabled: bool = False
    rate: int = 0


@dataclass(frozen=True)
class DiscountSettings:
    enabled: bool = False
    value: int = 0
    label: str = ""


@dataclass(frozen=True)
class BillingSettings:
    currency: str = "EGP"
    currency_symbol: str = "EGP"
    tax: TaxSettings = field(default_factory=TaxSettings)
    discount: DiscountSettings = field(default_factory=DiscountSettings)
    invoice_due_days: int = 0
    debt_limit: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BillingSettings":
        merged = _merge(DEFAULT_SETTINGS, data or {})
        return cls(
            currency=merged["currency"],
            currency_symbol=merged["currency_symbol"],
            tax=TaxSettings(enabled=bool(merged["tax"]["enabled"]), rate=int(merged["tax"]["rate"])),
            discount=DiscountSettings(
                enabled=bool(merged["discount"]["enabled"]),
                value=int(merged["discount"]["value"]),
                label=merged["discount"].get("label") or "",
            ),
            invoice_due_days=int(merged["invoice_due_days"]),
            debt_limit=merged["debt_limit"],
        )

    def to_dict(self) -> dict:
        return {
            "currency": self.currency,
            "currency_symbol": self.currency_symbol,
            "tax": {"enabled": self.tax.enabled, "rate": self.tax.rate},
            "discount": {
                "enabled": self.discount.enabled,
                "value": self.discount.value,
                "label": self.discount.label,
            },
            "invoice_due_days": self.invoice_due_days,
            "debt_limit": self.debt_limit,
        }


def _merge(base: dict, patch: dict) -> dict:
    out = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_percentage(value, key: str) -> None:
    if not _is_int(value):
        raise SettingsValidationError(f"{key} must be an integer percentage")
    if value < 0 or value > 100:
        raise SettingsValidationError(f"{key} must be between 0 and 100")


def validate_settings(data: dict) -> None:
    unknown = set(data) - set(DEFAULT_SETTINGS)
    if unknown:
        raise SettingsValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

    for key in ("currency", "currency_symbol"):
        if not isinstance(data[key], str) or not data[key].strip():
            raise SettingsValidationError(f"{key} must be a non-empty string")

    if not isinstance(data["tax"], dict) or not isinstance(data["discount"], dict):
        raise SettingsValidationError("tax and discount must be objects")
    if not isinstance(data["tax"].get("enabled"), bool):
        raise SettingsValidationError("tax.enabled must be a boolean")
    _validate_percentage(data["tax"].get("rate"), "tax.rate")
    if not isinstance(data["discount"].get("enabled"), bool):
        raise SettingsValidationError("discount.enabled must be a boolean")
    _validate_percentage(data["discount"].get("value"), "discount.value")
    label = data["discount"].get("label")
    if label is not None and not isinstance(label, str):
        raise SettingsValidationError("discount.label must be a string")
    if isinstance(label, str) and len(label) > 255:
        raise SettingsValidationError("discount.label cannot exceed 255 characters")

    due_days = data["invoice_due_days"]
    if not _is_int(due_days) or due_days < 0:
        raise SettingsValidationError("invoice_due_days must be a non-negative integer")

    debt_limit = data["debt_limit"]
    if debt_limit is not None and (not _is_int(debt_limit) or debt_limit < 0):
        raise SettingsValidationError("debt_limit must be null or a non-negative integer")


def get_settings() -> BillingSettings:
    row = db.session.query(AppSetting).order_by(AppSetting.id.asc()).first()
    if row is None:
        return BillingSettings.from_dict({})
    return BillingSettings.from_dict(row.value_json)


def update_settings(patch: dict) -> BillingSettings:
    """
    Merge `patch` into the stored settings document and validate the result.

    Nested objects (tax, discount) are merged key by key, so
    {"tax": {"enabled": True}} keeps the stored rate.
    """
    if not isinstance(patch, dict):
        raise SettingsValidationError("Settings payload must be an object")

    def _op():
        row = db.session.query(AppSetting).order_by(AppSetting.id.asc()).first()
        current = row.value_json if row is not None else {}
        merged = _merge(_merge(DEFAULT_SETTINGS, current), patch)
        validate_settings(merged)

        if row is None:
            row = AppSetting(value_json=merged)
            db.session.add(row)
        else:
            row.value_json = merged
        db.session.commit()
        return BillingSettings.from_dict(merged)

    return run_with_retry(_op)
