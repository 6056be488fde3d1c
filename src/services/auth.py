"""Hardcoded administrator credential check.

There are no sessions: admin endpoints send the credentials on every
request and they are compared against the configured pair.
"""

import secrets

from src.utils.config import AuthConfig
from src.utils.logger import get_logger

logger = get_logger(__name__)


class AdminAuthenticator:
    """Validates the single administrator username/password pair."""

    def __init__(self, config: AuthConfig) -> None:
        self._username = config.admin_username.encode()
        self._password = config.admin_password.encode()

    def check(self, username: str, password: str) -> bool:
        """Return whether the credentials match, in constant time."""
        user_ok = secrets.compare_digest(username.encode(), self._username)
        pass_ok = secrets.compare_digest(password.encode(), self._password)
        if not (user_ok and pass_ok):
            logger.warning("Rejected admin login for %r", username)
            return False
        return True
