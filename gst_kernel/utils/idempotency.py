"""
Idempotency key generation utilities.

Payout retries carry the same key on every attempt so the payment gateway
performs at most one transfer per logical payout.
"""


def generate_idempotency_key(
    producer: str,
    operation: str,
    reference: str,
) -> str:
    """
    Generate an idempotency key for an operation.

    Format: producer:operation:reference

    Example:
        >>> generate_idempotency_key("settlement", "payout", "ORD-1001")
        'settlement:payout:ORD-1001'
    """
    for name, value in (("producer", producer), ("operation", operation)):
        if not value or ":" in value:
            raise ValueError(f"{name} must be non-empty and must not contain ':'")
    if not reference:
        raise ValueError("reference must be non-empty")
    return f"{producer}:{operation}:{reference}"


def parse_idempotency_key(key: str) -> tuple[str, str, str]:
    """
    Parse an idempotency key into (producer, operation, reference).

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":", 2)
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts[0], parts[1], parts[2]
