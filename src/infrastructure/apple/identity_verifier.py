# src/infrastructure/apple/identity_verifier.py

import logging
import os
from typing import Any

import httpx
from jose import JWTError, jwt

from src.domain.exceptions import InvalidCredentialsError


logger = logging.getLogger(__name__)

APPLE_ISSUER = "https://appleid.apple.com"
APPLE_KEYS_URL = "https://appleid.apple.com/auth/keys"


class AppleIdentityVerifier:
    """Verifies Sign in with Apple identity tokens against Apple's JWKS."""

    def __init__(
        self,
        client_id: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.client_id = client_id or os.getenv("APPLE_CLIENT_ID", "it.seaboo.app")
        self.timeout = timeout
        self._client = client

    def verify(self, identity_token: str, nonce: str | None = None) -> dict[str, Any]:
        try:
            header = jwt.get_unverified_header(identity_token)
        except JWTError as exc:
            raise InvalidCredentialsError("Token Apple non valido") from exc

        key = self._find_key(header.get("kid"))
        if key is None:
            raise InvalidCredentialsError("Token Apple non valido")

        try:
            claims = jwt.decode(
                identity_token,
                key,
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=APPLE_ISSUER,
                options={"verify_at_hash": False},
            )
        except JWTError as exc:
            logger.warning("Apple identity token rejected: %s", exc)
            raise InvalidCredentialsError("Token Apple non valido") from exc

        if nonce is not None and claims.get("nonce") != nonce:
            logger.warning("Apple identity token nonce mismatch.")
            raise InvalidCredentialsError("Token Apple non valido")

        return claims

    def _find_key(self, kid: str | None) -> dict[str, Any] | None:
        try:
            if self._client is not None:
                response = self._client.get(APPLE_KEYS_URL, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.get(APPLE_KEYS_URL)
            response.raise_for_status()
            keys = response.json().get("keys", [])
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Could not fetch Apple signing keys: %s", exc)
            raise InvalidCredentialsError("Token Apple non valido") from exc

        for key in keys:
            if key.get("kid") == kid:
                return key
        return None
