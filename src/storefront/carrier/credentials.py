"""Lazily refreshed API credentials.

A ``CredentialHolder`` owns one bearer token. It logs in on first use and
again once the token's lifetime has passed, or after ``invalidate()`` when
the remote side rejected it.
"""

import threading
from datetime import UTC, datetime, timedelta

import structlog

logger = structlog.get_logger(__name__)


class CredentialHolder:
    def __init__(self, login, ttl: timedelta, clock=None):
        """``login`` is a callable returning a fresh token string."""
        self._login = login
        self._ttl = ttl
        self._clock = clock or (lambda: datetime.now(UTC))
        self._token: str | None = None
        self._expires_at: datetime | None = None
        self._lock = threading.Lock()

    @property
    def expires_at(self) -> datetime | None:
        return self._expires_at

    def is_valid(self) -> bool:
        return self._token is not None and self._expires_at is not None and self._clock() < self._expires_at

    def token(self) -> str:
        with self._lock:
            if not self.is_valid():
                self._token = self._login()
                self._expires_at = self._clock() + self._ttl
                logger.info("credentials_refreshed", expires_at=self._expires_at.isoformat())
            return self._token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = None
