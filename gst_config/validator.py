"""
Configuration Validator (``gst_config.validator``).

Responsibility
--------------
Cross-field checks on a parsed ``EngineConfig`` before it is handed to
the bootstrap.  Single-field bounds live in the schema dataclasses.

Invariants enforced
-------------------
* Classification codes are unique and numeric (4-8 digits).
* Exempt codes carry a zero rate; rates have at most two decimal places.
* Jurisdiction codes and their normalized names and aliases are unique.
* The timezone resolves.
* Commission plus the higher TDS rate leaves the vendor something.

Failure modes
-------------
* ``ConfigValidationResult.errors``  -> configuration MUST NOT be used.
* ``ConfigValidationResult.warnings``  -> usable, but should be reviewed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from gst_config.schema import EngineConfig

_CODE = re.compile(r"\d{4,8}")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_config(config: EngineConfig) -> ConfigValidationResult:
    """Run every check and collect the findings."""
    result = ConfigValidationResult()
    _check_rates(config, result)
    _check_jurisdictions(config, result)
    _check_settlement(config, result)

    try:
        ZoneInfo(config.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        result.add_error(f"Unknown timezone {config.timezone!r}")

    return result


def _check_rates(config: EngineConfig, result: ConfigValidationResult) -> None:
    if not config.rates:
        result.add_error("Rate table is empty")
    seen: set[str] = set()
    for rate in config.rates:
        code = rate.classification_code
        if code in seen:
            result.add_error(f"Duplicate classification code {code}")
        seen.add(code)
        if not _CODE.fullmatch(code):
            result.add_error(f"Classification code {code!r} must be 4-8 digits")
        if rate.rate != rate.rate.quantize(Decimal("0.01")):
            result.add_error(f"Rate {rate.rate} for {code} has more than two decimal places")
        if rate.is_exempt and rate.rate != 0:
            result.add_error(f"Exempt code {code} has non-zero rate {rate.rate}")
        if rate.rate == 0 and not rate.is_exempt:
            result.add_warning(f"Code {code} has a zero rate but is not marked exempt")


def _check_jurisdictions(config: EngineConfig, result: ConfigValidationResult) -> None:
    if not config.jurisdictions:
        result.add_error("Jurisdiction table is empty")
    codes: set[str] = set()
    names: dict[str, str] = {}
    for j in config.jurisdictions:
        if j.code in codes:
            result.add_error(f"Duplicate jurisdiction code {j.code}")
        codes.add(j.code)
        for spelling in (j.name, *j.aliases):
            key = _NON_ALNUM.sub("", spelling.lower())
            if not key:
                result.add_error(f"Jurisdiction {j.code} has an empty name or alias")
                continue
            owner = names.setdefault(key, j.code)
            if owner != j.code:
                result.add_error(
                    f"Name {spelling!r} maps to both jurisdiction {owner} and {j.code}"
                )


def _check_settlement(config: EngineConfig, result: ConfigValidationResult) -> None:
    commission = config.default_commission_pct
    if not Decimal("0") <= commission <= Decimal("100"):
        result.add_error(f"default_commission_pct must be within [0, 100], got {commission}")
    worst = commission + max(config.tds.rate_with_tax_id, config.tds.rate_without_tax_id)
    if worst > Decimal("100"):
        result.add_error(
            f"default commission {commission}% plus TDS exceeds 100% of the order value"
        )
    if config.thresholds.b2c_large == 0:
        result.add_warning("b2c_large threshold is zero; every consumer invoice is B2C-large")
