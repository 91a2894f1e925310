# app/services/auth_client.py
import requests

from app.domain.errors import AuthenticationError, ServiceUnavailableError
from app.utils.retry import http_retry
from app.utils.settings import AUTH_SERVICE_URL, HTTP_TIMEOUT_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class AuthClient:
    """
    Resolves a bearer token to the user it was issued for.
    Token format and verification belong to the auth service.
    """

    def __init__(self, base_url: str | None = None, timeout: int = HTTP_TIMEOUT_SECONDS):
        self.base_url = (base_url or AUTH_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    def resolve_user(self, token: str) -> dict:
        try:
            user = self._get_me(token)
        except requests.RequestException as e:
            logger.error(f"Auth service unavailable: {e}")
            raise ServiceUnavailableError("Authentication service unavailable") from e

        if user is None:
            raise AuthenticationError("Not authorized, token failed")
        if not user.get("isActive", True):
            raise AuthenticationError("Account has been deactivated")
        return user

    @http_retry()
    def _get_me(self, token: str) -> dict | None:
        url = f"{self.base_url}/auth/me"
        resp = requests.get(
            url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        if resp.status_code in (401, 403, 404):
            return None
        resp.raise_for_status()
        return resp.json()
