"""Utility modules for the GST kernel."""

from gst_kernel.utils.hashing import canonicalize_json, hash_payload
from gst_kernel.utils.idempotency import generate_idempotency_key

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "generate_idempotency_key",
]
