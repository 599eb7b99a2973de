from __future__ import annotations

import pytest

from settleup.utils.webhook_signature import compute_signature, verify_stripe_signature

SECRET = "whsec_unit"
BODY = b'{"type":"checkout.session.completed"}'
NOW = 1_700_000_000


def _header(timestamp: int = NOW, secret: str = SECRET, body: bytes = BODY) -> str:
    return f"t={timestamp},v1={compute_signature(secret, str(timestamp), body)}"


def test_valid_signature_passes() -> None:
    verify_stripe_signature(BODY, _header(), SECRET, now=NOW + 10)


def test_any_of_several_v1_signatures_may_match() -> None:
    header = f"t={NOW},v1=deadbeef,v1={compute_signature(SECRET, str(NOW), BODY)}"
    verify_stripe_signature(BODY, header, SECRET, now=NOW)


@pytest.mark.parametrize(
    ("header", "secret", "now", "message"),
    [
        (_header(), None, NOW, "Webhook secret not configured"),
        (None, SECRET, NOW, "Missing Stripe-Signature"),
        ("garbage", SECRET, NOW, "Invalid signature header"),
        (f"t={NOW}", SECRET, NOW, "Invalid signature header"),
        (_header(secret="whsec_other"), SECRET, NOW, "Signature mismatch"),
        (_header(body=b"{}"), SECRET, NOW, "Signature mismatch"),
        (_header(), SECRET, NOW + 301, "Timestamp outside tolerance"),
        (_header(), SECRET, NOW - 301, "Timestamp outside tolerance"),
    ],
)
def test_invalid_signatures_are_rejected(header, secret, now, message) -> None:
    with pytest.raises(ValueError, match=message):
        verify_stripe_signature(BODY, header, secret, now=now)


def test_tolerance_is_configurable() -> None:
    verify_stripe_signature(BODY, _header(), SECRET, tolerance_seconds=3600, now=NOW + 3000)
