"""Tests for canonical hashing and idempotency keys."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

import pytest

from gst_kernel.utils.hashing import canonicalize_json, hash_payload
from gst_kernel.utils.idempotency import generate_idempotency_key, parse_idempotency_key


class Colour(Enum):
    RED = "red"


class TestHashing:
    def test_key_order_does_not_matter(self):
        assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})

    def test_canonical_form(self):
        text = canonicalize_json({
            "rate": Decimal("12"),
            "at": datetime(2024, 7, 15, tzinfo=timezone.utc),
            "colour": Colour.RED,
        })
        assert text == '{"at":"2024-07-15T00:00:00+00:00","colour":"red","rate":"12.00"}'

    def test_decimal_scale_ignored(self):
        assert hash_payload([Decimal("12")]) == hash_payload([Decimal("12.00")])

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            canonicalize_json({"x": object()})

    def test_hex_digest(self):
        assert len(hash_payload({})) == 64


class TestIdempotencyKeys:
    def test_round_trip(self):
        key = generate_idempotency_key("settlement", "payout", "ORD:1")
        assert key == "settlement:payout:ORD:1"
        assert parse_idempotency_key(key) == ("settlement", "payout", "ORD:1")

    @pytest.mark.parametrize("producer, operation, reference", [
        ("", "payout", "ORD-1"),
        ("settle:ment", "payout", "ORD-1"),
        ("settlement", "", "ORD-1"),
        ("settlement", "payout", ""),
    ])
    def test_generate_rejects(self, producer, operation, reference):
        with pytest.raises(ValueError):
            generate_idempotency_key(producer, operation, reference)

    @pytest.mark.parametrize("key", ["nope", "a:b", "a::c", ":b:c"])
    def test_parse_rejects(self, key):
        with pytest.raises(ValueError):
            parse_idempotency_key(key)
