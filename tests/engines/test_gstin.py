"""
Tests for GSTIN validation.

Covers:
- Structure, length and case rules
- State code membership
- Modulo-36 check character
"""

import pytest

from gst_engines.gstin import (
    CHECKSUM_ALPHABET,
    DEFAULT_STATE_CODES,
    compute_check_character,
    is_valid_gstin,
    pan_of,
    state_code_of,
    validate_gstin,
)
from gst_kernel.exceptions import ChecksumMismatch, MalformedTaxId, ValidationError

VALID = [
    "27AAPFU0939F1ZV",
    "29ABCDE1234F1ZW",
    "07AAACR5055K1Z9",
    "33AAACH7409R1Z8",
    "09AAACI1681G1ZN",
    "27AABCT3518Q1ZW",
    "24AAACC1206D1ZM",
    "06BZAHM6385P6Z0",
]


class TestValidGstins:
    @pytest.mark.parametrize("gstin", VALID)
    def test_known_good_identifiers_validate(self, gstin):
        assert validate_gstin(gstin) == gstin
        assert is_valid_gstin(gstin)

    @pytest.mark.parametrize("gstin", VALID)
    def test_check_character_matches_last_position(self, gstin):
        assert compute_check_character(gstin[:14]) == gstin[14]

    def test_state_code_and_pan_extraction(self):
        assert state_code_of("27AAPFU0939F1ZV") == "27"
        assert pan_of("27AAPFU0939F1ZV") == "AAPFU0939F"

    def test_generated_identifier_validates(self, make_gstin):
        gstin = make_gstin("33", "ABCDE1234F", "2")
        assert validate_gstin(gstin) == gstin


class TestMalformedGstins:
    @pytest.mark.parametrize("value", [None, "", 27])
    def test_missing_or_non_string(self, value):
        with pytest.raises(MalformedTaxId, match="required"):
            validate_gstin(value)

    @pytest.mark.parametrize("value", ["27AAPFU0939F1Z", "27AAPFU0939F1ZVX"])
    def test_wrong_length(self, value):
        with pytest.raises(MalformedTaxId, match="15 characters"):
            validate_gstin(value)

    def test_lowercase_is_rejected_not_normalized(self):
        with pytest.raises(MalformedTaxId, match="lowercase"):
            validate_gstin("27aapfu0939f1zv")

    @pytest.mark.parametrize(
        "value",
        [
            "2AAAPFU0939F1ZV",  # state code not numeric
            "27AAPF10939F1ZV",  # digit inside the PAN letters
            "27AAPFU0939F0ZV",  # entity code 0
            "27AAPFU0939F1YV",  # 14th character must be Z
        ],
    )
    def test_structure_violations(self, value):
        with pytest.raises(MalformedTaxId, match="does not match"):
            validate_gstin(value)

    def test_unknown_state_code(self):
        with pytest.raises(MalformedTaxId, match="unknown state code 40"):
            validate_gstin("40AAPFU0939F1ZV")

    def test_state_codes_can_be_narrowed(self):
        with pytest.raises(MalformedTaxId):
            validate_gstin("27AAPFU0939F1ZV", state_codes={"29"})

    def test_error_carries_structured_fields(self):
        with pytest.raises(MalformedTaxId) as exc_info:
            validate_gstin("27AAPFU0939F1Z")
        data = exc_info.value.to_dict()
        assert data["code"] == "MALFORMED_TAX_ID"
        assert data["domain"] == "validation"
        assert data["tax_id"] == "27AAPFU0939F1Z"


class TestChecksum:
    def test_wrong_check_character(self):
        with pytest.raises(ChecksumMismatch) as exc_info:
            validate_gstin("27AAPFU0939F1ZA")
        assert exc_info.value.expected == "V"
        assert exc_info.value.received == "A"
        assert isinstance(exc_info.value, ValidationError)

    def test_every_other_check_character_fails(self):
        first14 = "27AAPFU0939F1Z"
        good = compute_check_character(first14)
        failures = [
            c for c in CHECKSUM_ALPHABET
            if c != good and not is_valid_gstin(first14 + c)
        ]
        assert len(failures) == len(CHECKSUM_ALPHABET) - 1

    def test_single_character_change_is_detected(self):
        assert not is_valid_gstin("27AAPFU0938F1ZV")

    def test_compute_rejects_wrong_length(self):
        with pytest.raises(MalformedTaxId):
            compute_check_character("27AAPFU0939F1")

    def test_compute_rejects_foreign_characters(self):
        with pytest.raises(MalformedTaxId, match="invalid character"):
            compute_check_character("27AAPFU0939f1Z")


def test_default_state_codes_cover_states_and_special_codes():
    assert "01" in DEFAULT_STATE_CODES
    assert "38" in DEFAULT_STATE_CODES
    assert {"97", "99"} <= DEFAULT_STATE_CODES
    assert "00" not in DEFAULT_STATE_CODES
    assert "39" not in DEFAULT_STATE_CODES
