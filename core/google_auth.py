"""Google OAuth 2.0 web-server flow over the public REST endpoints.

Usage:
    from core.google_auth import GoogleOAuth

    oauth = GoogleOAuth(client_id, client_secret, "http://localhost:3000/auth/google/callback")
    consent_url = oauth.authorization_url()
    tokens = oauth.exchange_code(code)
    access_token = oauth.refresh_access_token(tokens.refresh_token)
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import requests
from loguru import logger

from config import GOOGLE_SCOPES, PROVIDER_TIMEOUT
from core.errors import ProviderAuthFailure, ProviderOperationFailure

AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
USERINFO_ENDPOINT = "https://www.googleapis.com/oauth2/v2/userinfo"


@dataclass
class TokenSet:
    """Tokens returned by the authorization-code exchange."""
    access_token: str = ""
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: str = ""
    token_type: str = "Bearer"

    @classmethod
    def from_response(cls, data: dict) -> "TokenSet":
        expires_in = data.get("expires_in")
        return cls(
            access_token=data.get("access_token", ""),
            refresh_token=data.get("refresh_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
            scope=data.get("scope", ""),
            token_type=data.get("token_type", "Bearer"),
        )


class GoogleOAuth:
    """Client credentials plus the redirect URI registered with Google."""

    def __init__(self, client_id, client_secret, redirect_uri, scopes=None,
                 timeout=PROVIDER_TIMEOUT, session=None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes or GOOGLE_SCOPES)
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self) -> str:
        """Consent URL requesting offline access with forced re-consent.

        ``prompt=consent`` makes Google issue a refresh token on every grant.
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{AUTH_ENDPOINT}?{urlencode(params)}"

    def exchange_code(self, code: str) -> TokenSet:
        if not code:
            raise ProviderAuthFailure("Missing authorization code")
        data = self._token_request({
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        })
        tokens = TokenSet.from_response(data)
        if not tokens.access_token and not tokens.refresh_token:
            raise ProviderAuthFailure("Token response carried no tokens")
        return tokens

    def refresh_access_token(self, refresh_token: str) -> str:
        data = self._token_request({
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })
        access_token = data.get("access_token")
        if not access_token:
            raise ProviderAuthFailure("Refresh response carried no access token")
        return access_token

    def fetch_user(self, access_token: str) -> dict:
        """Return the Google account profile (email, name, picture)."""
        try:
            resp = self.session.get(
                USERINFO_ENDPOINT,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderOperationFailure(f"userinfo request failed: {e}") from e
        if resp.status_code >= 400:
            raise ProviderOperationFailure(
                f"userinfo returned HTTP {resp.status_code}", status_code=resp.status_code,
            )
        return resp.json()

    def _token_request(self, fields):
        payload = {"client_id": self.client_id, "client_secret": self.client_secret, **fields}
        try:
            resp = self.session.post(TOKEN_ENDPOINT, data=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderAuthFailure(f"Token endpoint unreachable: {e}") from e
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("error", "")
            except ValueError:
                detail = ""
            logger.warning("Token endpoint rejected {} grant: HTTP {} {}",
                           fields["grant_type"], resp.status_code, detail)
            raise ProviderAuthFailure(
                f"Token endpoint returned HTTP {resp.status_code} {detail}".strip(),
                status_code=resp.status_code,
            )
        return resp.json()
