"""Tests for engine wiring from configuration."""

from decimal import Decimal

from gst_config import parse_config
from gst_kernel.domain.clock import SystemClock
from gst_kernel.storage.memory import InMemoryStorage
from gst_modules.bootstrap import build_engine, build_jurisdiction_aliases, build_rate_resolver


def test_defaults(captured_logs):
    engine = build_engine()
    assert isinstance(engine.storage, InMemoryStorage)
    assert isinstance(engine.clock, SystemClock)
    assert engine.payouts is None
    built = [r for r in captured_logs() if r["message"] == "settlement_engine_built"]
    assert built[0]["storage"] == "InMemoryStorage"
    assert built[0]["checksum"] == engine.config.checksum


def test_rate_table_from_config(config):
    resolver = build_rate_resolver(config)
    assert len(resolver) == len(config.rates)
    assert resolver.rate("8471").rate == Decimal("12.00")
    assert resolver.rate("4901").is_exempt


def test_jurisdiction_aliases(engine):
    assert engine.gst.normalize("MH") == "27"
    assert engine.gst.normalize(" karnataka ") == "29"
    assert engine.gst.normalize("New Delhi") == "07"
    assert engine.gst.normalize("33") == "33"


def test_alias_map_covers_codes_and_names(config):
    aliases = build_jurisdiction_aliases(config)
    assert set(aliases.values()) == config.state_codes


def test_settings_flow_into_services(memory_storage, deterministic_clock):
    config = parse_config({
        "config_id": "narrow",
        "invoicing": {"sequence_width": 3},
        "settlement": {"default_commission_pct": "20"},
        "thresholds": {"b2c_large": 100, "tds": 0},
        "rates": [{"code": "8471", "rate": "10", "category": "electronics"}],
        "jurisdictions": [{"code": "27", "name": "Maharashtra"}],
    })
    engine = build_engine(config, memory_storage, deterministic_clock)
    assert engine.allocator.format_invoice_number("V1", "2024-25", 7) == "V1/2024-25/007"
    assert engine.tds.policy.threshold == 0
    assert engine.fiscal_calendar.fiscal_year(deterministic_clock.now()) == "2024-25"
