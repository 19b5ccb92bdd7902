# medreview/auth.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import jwt
import requests

from medreview.config import Settings, get_settings
from medreview.errors import (
    ConfigurationError,
    UnauthorizedError,
    UpstreamServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ALLOWED_ROLES = ("patient", "doctor")


class IdentityProvider:
    """
    Client for the hosted identity provider (Clerk).

    - session tokens are RS256 JWTs checked against the provider's JWKS
    - user metadata is written through the backend management API
    """

    def __init__(self, settings: Optional[Settings] = None, timeout: float = 10.0):
        settings = settings or get_settings()
        if not settings.clerk_secret_key:
            raise ConfigurationError("CLERK_SECRET_KEY is not set in environment (.env).")
        if not settings.clerk_jwks_url:
            raise ConfigurationError("CLERK_JWKS_URL is not set in environment (.env).")

        self.secret_key = settings.clerk_secret_key
        self.api_url = settings.clerk_api_url.rstrip("/")
        self.issuer = settings.clerk_issuer
        self.timeout = timeout
        self.jwks_client = jwt.PyJWKClient(settings.clerk_jwks_url)

    def verify_session_token(self, token: str) -> str:
        """Return the user id (sub claim) of a valid session token."""
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.issuer,
                options={"verify_aud": False, "verify_iss": self.issuer is not None},
            )
        except jwt.PyJWTError as e:
            logger.info("Rejected session token: %s", e)
            raise UnauthorizedError() from e

        user_id = claims.get("sub")
        if not user_id:
            raise UnauthorizedError()
        return user_id

    def set_private_metadata(self, user_id: str, metadata: Dict[str, Any]) -> None:
        try:
            r = requests.patch(
                f"{self.api_url}/users/{user_id}/metadata",
                json={"private_metadata": metadata},
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            logger.error("Updating metadata for %s failed: %s", user_id, e)
            raise UpstreamServiceError("Failed to update user metadata") from e

    def set_role(self, user_id: str, role: str) -> None:
        if role not in ALLOWED_ROLES:
            raise ValidationError("Invalid role")
        self.set_private_metadata(user_id, {"role": role})
        logger.info("Assigned role %s to %s", role, user_id)
