from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Protocol

import httpx

from settleup.core.config import settings
from settleup.core.errors import ProviderError
from settleup.core.logging_setup import logger
from settleup.utils.dates import from_unix

# ISO 4217 currencies Stripe charges in whole units.
ZERO_DECIMAL_CURRENCIES = {
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
}


def to_minor_units(amount: float, currency: str) -> int:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(round(amount))
    return int(round(amount * 100))


@dataclass
class PaymentLink:
    url: str
    expires_at: datetime | None = None
    external_id: str | None = None


class PaymentProvider(Protocol):
    name: str

    def create_payment_link(
        self,
        *,
        amount_minor: int,
        currency: str,
        product_name: str,
        product_description: str,
        success_url: str,
        cancel_url: str,
        metadata: Mapping[str, str],
    ) -> PaymentLink:
        ...


class StripeCheckoutProvider:
    """Creates Stripe Checkout sessions through the REST API."""

    name = "stripe"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._api_key = api_key or settings.stripe_api_key
        if not self._api_key:
            raise ProviderError("Payment provider is not configured")
        self._base_url = (base_url or settings.stripe_api_base).rstrip("/")
        self._timeout = timeout_seconds or settings.payment_provider_timeout_seconds

    def create_payment_link(
        self,
        *,
        amount_minor: int,
        currency: str,
        product_name: str,
        product_description: str,
        success_url: str,
        cancel_url: str,
        metadata: Mapping[str, str],
    ) -> PaymentLink:
        form: dict[str, str] = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": currency.lower(),
            "line_items[0][price_data][unit_amount]": str(amount_minor),
            "line_items[0][price_data][product_data][name]": product_name,
            "line_items[0][price_data][product_data][description]": product_description,
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = str(value)

        body = self._post("/checkout/sessions", form)
        url = body.get("url")
        if not url:
            raise ProviderError("Payment provider returned no checkout URL")
        return PaymentLink(url=url, expires_at=from_unix(body.get("expires_at")), external_id=body.get("id"))

    def _post(self, path: str, form: Mapping[str, str]) -> dict[str, Any]:
        try:
            response = httpx.post(
                f"{self._base_url}{path}",
                data=dict(form),
                auth=(self._api_key, ""),
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("[stripe] request to %s failed: %s", path, exc)
            raise ProviderError("Payment provider unavailable") from exc

        if response.status_code >= 400:
            try:
                detail = response.json().get("error", {}).get("message")
            except ValueError:
                detail = None
            logger.error("[stripe] %s answered %s: %s", path, response.status_code, detail or response.text)
            raise ProviderError(detail or "Payment provider rejected the request")
        return response.json()


def get_payment_provider() -> PaymentProvider:
    return StripeCheckoutProvider()
