"""
GSTIN validation -- structure, state code and modulo-36 check character.

A GSTIN is 15 characters:

    27 AAPFU0939F 1 Z V
    |  |          | | +-- check character over the first 14 (modulo 36)
    |  |          | +---- literal 'Z'
    |  |          +------ entity code for the PAN within the state [1-9A-Z]
    |  +----------------- PAN: 5 letters, 4 digits, 1 letter
    +-------------------- state code

Check character: over the alphabet ``0-9A-Z``, multiply each of the first
14 values by factors alternating 1, 2 from the left; each product p
contributes ``p // 36 + p % 36``; check = ``(36 - total % 36) % 36``.

Pure functions, no I/O.  Lowercase input is rejected, not upper-cased.
"""

from __future__ import annotations

import re
from collections.abc import Collection

from gst_kernel.exceptions import ChecksumMismatch, MalformedTaxId

GSTIN_LENGTH = 15
CHECKSUM_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_MODULUS = len(CHECKSUM_ALPHABET)

_STRUCTURE = re.compile(r"[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]")

# 01-38 plus 97 (other territory) and 99 (centre jurisdiction)
DEFAULT_STATE_CODES: frozenset[str] = frozenset(
    [f"{n:02d}" for n in range(1, 39)] + ["97", "99"]
)


def compute_check_character(first14: str) -> str:
    """Check character for the first 14 characters of a GSTIN.

    Raises:
        MalformedTaxId: wrong length or a character outside ``0-9A-Z``.
    """
    if len(first14) != GSTIN_LENGTH - 1:
        raise MalformedTaxId(first14, "check character needs exactly 14 characters")
    total = 0
    for position, char in enumerate(first14):
        value = CHECKSUM_ALPHABET.find(char)
        if value < 0:
            raise MalformedTaxId(first14, f"invalid character {char!r}")
        product = value * (1 if position % 2 == 0 else 2)
        total += product // _MODULUS + product % _MODULUS
    return CHECKSUM_ALPHABET[(_MODULUS - total % _MODULUS) % _MODULUS]


def validate_gstin(
    tax_id: str | None,
    state_codes: Collection[str] = DEFAULT_STATE_CODES,
) -> str:
    """Validate and return ``tax_id`` unchanged.

    Raises:
        MalformedTaxId: missing, wrong length, bad structure or state code.
        ChecksumMismatch: structure fine, check character wrong.
    """
    if tax_id is None or not isinstance(tax_id, str) or not tax_id:
        raise MalformedTaxId(tax_id, "tax id is required")
    if len(tax_id) != GSTIN_LENGTH:
        raise MalformedTaxId(tax_id, f"must be {GSTIN_LENGTH} characters, got {len(tax_id)}")
    if _STRUCTURE.fullmatch(tax_id) is None:
        reason = "lowercase characters are not allowed" if tax_id != tax_id.upper() else (
            "does not match NNAAAAANNNNA[1-9A-Z]Z[0-9A-Z]"
        )
        raise MalformedTaxId(tax_id, reason)
    if tax_id[:2] not in state_codes:
        raise MalformedTaxId(tax_id, f"unknown state code {tax_id[:2]}")

    expected = compute_check_character(tax_id[:14])
    if tax_id[14] != expected:
        raise ChecksumMismatch(tax_id, expected=expected, received=tax_id[14])
    return tax_id


def is_valid_gstin(
    tax_id: str | None,
    state_codes: Collection[str] = DEFAULT_STATE_CODES,
) -> bool:
    try:
        validate_gstin(tax_id, state_codes)
    except (MalformedTaxId, ChecksumMismatch):
        return False
    return True


def state_code_of(tax_id: str) -> str:
    return validate_gstin(tax_id)[:2]


def pan_of(tax_id: str) -> str:
    """The 10-character PAN embedded at positions 3-12."""
    return validate_gstin(tax_id)[2:12]
