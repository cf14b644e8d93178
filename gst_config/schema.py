"""
EngineConfig schema.

Defines the typed configuration for the settlement engine.  YAML documents
are parsed into these types by the loader and checked by the validator;
the bootstrap turns them into engine and service inputs.

Every type is a frozen dataclass.  ``__post_init__`` rejects values that
could never be right (negative thresholds, rates outside [0, 100]); the
validator handles cross-field rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Reference tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateDef:
    """One row of the HSN rate table."""

    classification_code: str
    rate: Decimal
    category: str
    description: str = ""
    is_exempt: bool = False

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.rate <= Decimal("100"):
            raise ValueError(
                f"rate for {self.classification_code} must be within [0, 100], got {self.rate}"
            )


@dataclass(frozen=True)
class JurisdictionDef:
    """A state or union territory and the names it may be written as."""

    code: str
    name: str
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if len(self.code) != 2 or not self.code.isdigit():
            raise ValueError(f"jurisdiction code must be two digits, got {self.code!r}")


# ---------------------------------------------------------------------------
# Thresholds and withholding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThresholdsDef:
    """Amounts in paise."""

    b2c_large: int = 250000
    tds: int = 50000

    def __post_init__(self) -> None:
        if self.b2c_large < 0 or self.tds < 0:
            raise ValueError("thresholds cannot be negative")


@dataclass(frozen=True)
class TdsDef:
    rate_with_tax_id: Decimal = Decimal("1")
    rate_without_tax_id: Decimal = Decimal("5")
    section: str = "194O"

    def __post_init__(self) -> None:
        for rate in (self.rate_with_tax_id, self.rate_without_tax_id):
            if not Decimal("0") <= rate <= Decimal("100"):
                raise ValueError(f"TDS rate must be within [0, 100], got {rate}")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """
    The complete runtime configuration.

    ``checksum`` is the SHA-256 of the source document and identifies the
    configuration version in logs.
    """

    config_id: str
    version: int
    fiscal_year_start_month: int = 4
    timezone: str = "Asia/Kolkata"
    invoice_sequence_width: int = 5
    sequence_retry_attempts: int = 3
    sequence_retry_backoff_seconds: float = 0.05
    default_commission_pct: Decimal = Decimal("10")
    payout_max_attempts: int = 5
    report_cache_size: int = 128
    thresholds: ThresholdsDef = field(default_factory=ThresholdsDef)
    tds: TdsDef = field(default_factory=TdsDef)
    rates: tuple[RateDef, ...] = ()
    jurisdictions: tuple[JurisdictionDef, ...] = ()
    checksum: str = ""

    def __post_init__(self) -> None:
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError(
                f"fiscal_year_start_month must be 1-12, got {self.fiscal_year_start_month}"
            )
        if self.invoice_sequence_width < 1:
            raise ValueError("invoice_sequence_width must be at least 1")
        if self.sequence_retry_attempts < 1:
            raise ValueError("sequence_retry_attempts must be at least 1")
        if self.payout_max_attempts < 1:
            raise ValueError("payout_max_attempts must be at least 1")

    @property
    def state_codes(self) -> frozenset[str]:
        return frozenset(j.code for j in self.jurisdictions)

    def jurisdiction(self, code: str) -> JurisdictionDef | None:
        for j in self.jurisdictions:
            if j.code == code:
                return j
        return None
