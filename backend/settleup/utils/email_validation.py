from __future__ import annotations

from functools import lru_cache

from email_validator import EmailNotValidError, validate_email


@lru_cache(maxsize=512)
def _validate_format_only(candidate: str) -> str:
    """Normalize addresses validating only syntax/IDNA information."""
    info = validate_email(candidate, check_deliverability=False)
    return (info.normalized or info.email).lower()


def normalize_email(value: str | None) -> str:
    """Return the lowercased, syntax-checked form of an address."""
    candidate = (value or "").strip()
    if not candidate:
        raise ValueError("Email is required")
    try:
        return _validate_format_only(candidate.lower())
    except EmailNotValidError as exc:  # pragma: no cover - library error text varies
        raise ValueError(f"Invalid email address: {exc}") from exc
