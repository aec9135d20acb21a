"""Tests for the lazily refreshed credential holder."""

from datetime import UTC, datetime, timedelta

from storefront.carrier.credentials import CredentialHolder


class _Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 10, tzinfo=UTC)

    def __call__(self):
        return self.now


def _holder(clock, ttl=timedelta(hours=1)):
    logins = []

    def login():
        logins.append(clock())
        return f"token-{len(logins)}"

    return CredentialHolder(login, ttl=ttl, clock=clock), logins


class TestCredentialHolder:
    def test_logs_in_lazily(self):
        clock = _Clock()
        holder, logins = _holder(clock)
        assert logins == []
        assert not holder.is_valid()

        assert holder.token() == "token-1"
        assert holder.is_valid()
        assert holder.expires_at == clock.now + timedelta(hours=1)

    def test_reuses_token_until_expiry(self):
        clock = _Clock()
        holder, logins = _holder(clock)
        holder.token()
        clock.now += timedelta(minutes=59)
        assert holder.token() == "token-1"
        assert len(logins) == 1

    def test_refreshes_after_expiry(self):
        clock = _Clock()
        holder, logins = _holder(clock)
        holder.token()
        clock.now += timedelta(hours=1)
        assert holder.token() == "token-2"
        assert len(logins) == 2

    def test_invalidate_forces_login(self):
        clock = _Clock()
        holder, _ = _holder(clock)
        holder.token()
        holder.invalidate()
        assert holder.expires_at is None
        assert holder.token() == "token-2"
