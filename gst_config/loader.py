"""
Configuration Loader (``gst_config.loader``).

Responsibility
--------------
Loads the YAML configuration document and parses it into the typed
``gst_config.schema`` dataclasses.  Runtime callers go through
``gst_config.get_active_config()``; this module is the tooling beneath it.

Architecture position
---------------------
**Config layer**.  No dependency on kernel, engines or modules.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad values  -> ``ValueError`` from the schema ``__post_init__`` checks.

Audit relevance
---------------
``compute_checksum`` ties every log line carrying the config checksum to
one exact source document.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from gst_config.schema import EngineConfig, JurisdictionDef, RateDef, TdsDef, ThresholdsDef


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal:
    """Rates are written as strings or ints in YAML; floats are refused."""
    if isinstance(value, float):
        raise ValueError(f"write {value!r} as a quoted decimal string")
    return Decimal(str(value))


def parse_rate(data: dict[str, Any]) -> RateDef:
    return RateDef(
        classification_code=str(data["code"]),
        rate=parse_decimal(data["rate"]),
        category=data["category"],
        description=data.get("description", ""),
        is_exempt=data.get("exempt", False),
    )


def parse_jurisdiction(data: dict[str, Any]) -> JurisdictionDef:
    return JurisdictionDef(
        code=str(data["code"]).zfill(2),
        name=data["name"],
        aliases=tuple(str(a) for a in data.get("aliases", ())),
    )


def parse_config(data: dict[str, Any]) -> EngineConfig:
    """
    Parse an ``EngineConfig`` from a loaded YAML document.

    Postconditions:
        - ``checksum`` is ``compute_checksum(data)``.
    """
    fiscal = data.get("fiscal", {})
    invoicing = data.get("invoicing", {})
    settlement = data.get("settlement", {})
    thresholds = data.get("thresholds", {})
    tds = data.get("tds", {})
    reporting = data.get("reporting", {})

    return EngineConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        fiscal_year_start_month=int(fiscal.get("start_month", 4)),
        timezone=fiscal.get("timezone", "Asia/Kolkata"),
        invoice_sequence_width=int(invoicing.get("sequence_width", 5)),
        sequence_retry_attempts=int(invoicing.get("retry_attempts", 3)),
        sequence_retry_backoff_seconds=float(invoicing.get("retry_backoff_seconds", 0.05)),
        default_commission_pct=parse_decimal(settlement.get("default_commission_pct", "10")),
        payout_max_attempts=int(settlement.get("payout_max_attempts", 5)),
        report_cache_size=int(reporting.get("cache_size", 128)),
        thresholds=ThresholdsDef(
            b2c_large=int(thresholds.get("b2c_large", 250000)),
            tds=int(thresholds.get("tds", 50000)),
        ),
        tds=TdsDef(
            rate_with_tax_id=parse_decimal(tds.get("rate_with_tax_id", "1")),
            rate_without_tax_id=parse_decimal(tds.get("rate_without_tax_id", "5")),
            section=str(tds.get("section", "194O")),
        ),
        rates=tuple(parse_rate(r) for r in data.get("rates", ())),
        jurisdictions=tuple(parse_jurisdiction(j) for j in data.get("jurisdictions", ())),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> EngineConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
