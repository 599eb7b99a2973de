from __future__ import annotations

from urllib.parse import urlencode

import httpx

from settleup.core.config import settings
from settleup.core.errors import ProviderError
from settleup.core.logging_setup import logger
from settleup.schemas.auth import ExternalProfile

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class GoogleIdentityClient:
    """OAuth 2.0 authorization-code flow against Google, scopes ``profile email``."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        *,
        redirect_uri: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.client_id = client_id or settings.google_client_id
        self.client_secret = client_secret or settings.google_client_secret
        self.redirect_uri = redirect_uri or settings.google_callback_url
        self._timeout = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str | None = None) -> str:
        if not self.configured:
            raise ProviderError("Google sign-in is not configured")
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid profile email",
            "access_type": "online",
            "prompt": "select_account",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> ExternalProfile:
        if not self.configured:
            raise ProviderError("Google sign-in is not configured")
        try:
            token_response = httpx.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
                timeout=self._timeout,
            )
            token_response.raise_for_status()
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise ProviderError("Google did not return an access token")

            profile_response = httpx.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self._timeout,
            )
            profile_response.raise_for_status()
            info = profile_response.json()
        except httpx.HTTPError as exc:
            logger.warning("[google] code exchange failed: %s", exc)
            raise ProviderError("Google sign-in failed") from exc

        if not info.get("sub") or not info.get("email"):
            raise ProviderError("Google profile is missing id or email")
        if info.get("email_verified") is False:
            raise ProviderError("Google email address is not verified")
        return ExternalProfile(provider_id=str(info["sub"]), email=info["email"], name=info.get("name") or "")


def get_identity_client() -> GoogleIdentityClient:
    return GoogleIdentityClient()
