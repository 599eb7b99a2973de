from __future__ import annotations

import hashlib
import hmac
import time


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_stripe_signature(
    raw_body: bytes,
    sig_header: str | None,
    secret: str | None,
    *,
    tolerance_seconds: int = 300,
    now: float | None = None,
) -> None:
    """Check a ``Stripe-Signature`` header (``t=timestamp,v1=signature``).

    The signed payload is ``"{timestamp}.{raw_body}"`` under HMAC-SHA256 with the
    webhook secret. Any number of ``v1`` entries may be present; one must match.
    Raises ``ValueError`` on any mismatch.
    """
    if not secret:
        raise ValueError("Webhook secret not configured")
    if not sig_header:
        raise ValueError("Missing Stripe-Signature")

    timestamp: str | None = None
    candidates: list[str] = []
    for item in sig_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1" and value:
            candidates.append(value)
    if not timestamp or not candidates:
        raise ValueError("Invalid signature header")

    expected = compute_signature(secret, timestamp, raw_body)
    if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
        raise ValueError("Signature mismatch")

    try:
        issued_at = int(timestamp)
    except ValueError as exc:
        raise ValueError("Invalid signature timestamp") from exc
    current = time.time() if now is None else now
    if abs(int(current) - issued_at) > tolerance_seconds:
        raise ValueError("Timestamp outside tolerance")
