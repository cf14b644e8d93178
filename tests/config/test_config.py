"""
Tests for configuration loading and validation.

Covers:
- The packaged defaults load and validate
- Resolution order: argument, environment variable, defaults
- Deterministic checksums
- Cross-field validation errors and warnings
"""

from decimal import Decimal

import pytest
import yaml

from gst_config import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    clear_config_cache,
    compute_checksum,
    get_active_config,
    load_yaml_file,
    parse_config,
    validate_config,
)

MINIMAL = {
    "config_id": "test",
    "rates": [{"code": "8471", "rate": "12", "category": "electronics"}],
    "jurisdictions": [{"code": "27", "name": "Maharashtra", "aliases": ["MH"]}],
}


def _write(tmp_path, data, name="engine.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_config_cache()
    yield
    clear_config_cache()


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config()
        assert config.config_id == "gst-settlement-default"
        assert config.fiscal_year_start_month == 4
        assert config.timezone == "Asia/Kolkata"
        assert config.thresholds.tds == 50000
        assert config.thresholds.b2c_large == 250000
        assert config.tds.rate_with_tax_id == Decimal("1")
        assert config.tds.rate_without_tax_id == Decimal("5")
        assert config.default_commission_pct == Decimal("10")
        assert {"27", "29", "07", "33"} <= config.state_codes
        assert config.jurisdiction("29").name == "Karnataka"

    def test_defaults_are_valid(self):
        result = validate_config(get_active_config())
        assert result.is_valid, result.errors

    def test_loaded_once(self):
        assert get_active_config() is get_active_config()

    def test_trace_logged(self, captured_logs):
        get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "GST_CONFIG_TRACE"]
        assert traces[0]["config_id"] == "gst-settlement-default"
        assert len(traces[0]["checksum"]) == 64


class TestResolution:
    def test_explicit_path(self, tmp_path):
        config = get_active_config(_write(tmp_path, MINIMAL))
        assert config.config_id == "test"

    def test_environment_variable(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(_write(tmp_path, MINIMAL)))
        assert get_active_config().config_id == "test"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")

    def test_invalid_config_refused(self, tmp_path):
        bad = dict(MINIMAL, rates=[{"code": "84", "rate": "12", "category": "x"}])
        with pytest.raises(ValueError, match="4-8 digits"):
            get_active_config(_write(tmp_path, bad))


class TestChecksum:
    def test_deterministic(self):
        data = load_yaml_file(DEFAULT_CONFIG_PATH)
        assert compute_checksum(data) == compute_checksum(dict(reversed(list(data.items()))))
        assert parse_config(data).checksum == compute_checksum(data)

    def test_changes_with_content(self):
        assert compute_checksum(MINIMAL) != compute_checksum(dict(MINIMAL, config_id="other"))


class TestParsing:
    def test_float_rate_refused(self):
        with pytest.raises(ValueError, match="quoted decimal"):
            parse_config(dict(MINIMAL, rates=[{"code": "8471", "rate": 12.5, "category": "x"}]))

    def test_jurisdiction_code_padded(self):
        config = parse_config(dict(MINIMAL, jurisdictions=[{"code": 7, "name": "Delhi"}]))
        assert config.jurisdictions[0].code == "07"

    @pytest.mark.parametrize("section, values", [
        ("fiscal", {"start_month": 13}),
        ("invoicing", {"sequence_width": 0}),
        ("thresholds", {"tds": -1}),
        ("tds", {"rate_with_tax_id": "101"}),
    ])
    def test_out_of_range_values(self, section, values):
        with pytest.raises(ValueError):
            parse_config(dict(MINIMAL, **{section: values}))

    def test_missing_config_id(self):
        with pytest.raises(KeyError):
            parse_config({"rates": MINIMAL["rates"]})


class TestValidation:
    def _errors(self, **overrides):
        return validate_config(parse_config(dict(MINIMAL, **overrides))).errors

    def test_duplicate_codes(self):
        rate = {"code": "8471", "rate": "12", "category": "x"}
        assert any("Duplicate classification" in e for e in self._errors(rates=[rate, rate]))

    def test_exempt_with_rate(self):
        rates = [{"code": "4901", "rate": "5", "category": "books", "exempt": True}]
        assert any("Exempt code" in e for e in self._errors(rates=rates))

    def test_too_many_decimals(self):
        rates = [{"code": "8471", "rate": "12.125", "category": "x"}]
        assert any("two decimal places" in e for e in self._errors(rates=rates))

    def test_alias_claimed_twice(self):
        jurisdictions = [
            {"code": "27", "name": "Maharashtra", "aliases": ["MH"]},
            {"code": "28", "name": "Elsewhere", "aliases": ["M H"]},
        ]
        assert any("maps to both" in e for e in self._errors(jurisdictions=jurisdictions))

    def test_unknown_timezone(self):
        assert any("timezone" in e for e in self._errors(fiscal={"timezone": "Mars/Base"}))

    def test_commission_plus_tds_over_100(self):
        errors = self._errors(settlement={"default_commission_pct": "97"})
        assert any("exceeds 100%" in e for e in errors)

    def test_empty_tables(self):
        errors = validate_config(parse_config({"config_id": "empty"})).errors
        assert "Rate table is empty" in errors
        assert "Jurisdiction table is empty" in errors

    def test_zero_rate_warning(self):
        rates = [{"code": "4901", "rate": "0", "category": "books"}]
        result = validate_config(parse_config(dict(MINIMAL, rates=rates)))
        assert result.is_valid
        assert any("not marked exempt" in w for w in result.warnings)
