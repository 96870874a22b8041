"""
Tests for the token lifecycle manager.

These tests verify:
- Fresh tokens are served from the store without a provider call
- One refresh per user no matter how many callers ask at once
- invalid_grant purges the record, transient failures leave it intact
- A refreshed token that could not be persisted is never handed out
- A caller going away does not cancel the shared refresh
- Connect / status / disconnect bookkeeping
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from authcore.core.errors import NotConnected, ReauthRequired, TransientAuthError
from authcore.environments.base import (
    InvalidGrantError,
    ProviderError,
    TransientProviderError,
)
from tests.doubles import make_record, make_tokens


PROVIDER = "google"


async def _drain(token_manager, user_id, rounds: int = 50):
    """Let a detached refresh task finish and settle."""
    for _ in range(rounds):
        if not token_manager.is_refreshing(user_id):
            return
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# READ PATH
# ---------------------------------------------------------------------------

class TestGetValidAccessToken:
    """Tests for the no-refresh paths of get_valid_access_token."""

    @pytest.mark.asyncio
    async def test_no_record_is_not_connected(self, token_manager, fake_provider):
        """Should raise NotConnected without touching the provider."""
        with pytest.raises(NotConnected):
            await token_manager.get_valid_access_token(uuid.uuid4())

        fake_provider.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fresh_token_returned_as_is(self, token_manager, memory_store, fake_provider):
        """Should return the stored token when it outlives the margin."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=3600))

        token = await token_manager.get_valid_access_token(user_id)

        assert token == "ya29.old-access"
        fake_provider.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_token_inside_margin_is_refreshed(self, token_manager, memory_store, fake_provider):
        """Should refresh a token expiring in 10s when the margin is 60s."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        token = await token_manager.get_valid_access_token(user_id)

        assert token == "ya29.new-access"
        fake_provider.refresh.assert_awaited_once_with("1//refresh-old")

    @pytest.mark.asyncio
    async def test_unknown_expiry_is_refreshed(self, token_manager, memory_store, fake_provider):
        """Should treat a record without expires_at as expired."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=None))

        assert await token_manager.get_valid_access_token(user_id) == "ya29.new-access"
        fake_provider.refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_outage_is_transient(self, token_manager, memory_store):
        """Should surface a store read failure as TransientAuthError."""
        memory_store.fail_reads = True

        with pytest.raises(TransientAuthError):
            await token_manager.get_valid_access_token(uuid.uuid4())


# ---------------------------------------------------------------------------
# REFRESH OUTCOMES
# ---------------------------------------------------------------------------

class TestRefresh:
    """Tests for refresh success and failure classification."""

    @pytest.mark.asyncio
    async def test_refresh_keeps_previous_refresh_token(self, token_manager, memory_store):
        """Should keep the old refresh token when the provider does not rotate it."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10, calendar_id="work@example.com"))

        await token_manager.get_valid_access_token(user_id)

        stored = memory_store.get(user_id, PROVIDER)
        assert stored.access_token == "ya29.new-access"
        assert stored.refresh_token == "1//refresh-old"
        assert stored.calendar_id == "work@example.com"
        assert stored.expires_at > datetime.now(timezone.utc) + timedelta(minutes=50)

    @pytest.mark.asyncio
    async def test_refresh_stores_rotated_refresh_token(
        self, token_manager, memory_store, fake_provider
    ):
        """Should persist a rotated refresh token."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))
        fake_provider.refresh.return_value = make_tokens(refresh_token="1//refresh-rotated")

        await token_manager.get_valid_access_token(user_id)

        assert memory_store.get(user_id, PROVIDER).refresh_token == "1//refresh-rotated"

    @pytest.mark.asyncio
    async def test_invalid_grant_purges_record(self, token_manager, memory_store, fake_provider):
        """Should delete the record and require re-consent on invalid_grant."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))
        fake_provider.refresh.side_effect = InvalidGrantError("revoked")

        with pytest.raises(ReauthRequired):
            await token_manager.get_valid_access_token(user_id)

        assert memory_store.get(user_id, PROVIDER) is None

        # Next call finds nothing to refresh
        with pytest.raises(NotConnected):
            await token_manager.get_valid_access_token(user_id)
        assert fake_provider.refresh.await_count == 1

    @pytest.mark.asyncio
    async def test_reauth_required_is_a_not_connected(self, token_manager, memory_store, fake_provider):
        """Should let callers that only handle NotConnected catch ReauthRequired."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))
        fake_provider.refresh.side_effect = InvalidGrantError("revoked")

        with pytest.raises(NotConnected):
            await token_manager.get_valid_access_token(user_id)

    @pytest.mark.asyncio
    async def test_transient_failure_leaves_record(self, token_manager, memory_store, fake_provider):
        """Should keep the record on a transient failure so a retry can succeed."""
        user_id = uuid.uuid4()
        original = make_record(expires_in=10)
        memory_store.put(user_id, PROVIDER, original)
        fake_provider.refresh.side_effect = [
            TransientProviderError("HTTP 503"),
            make_tokens(access_token="ya29.after-retry"),
        ]

        with pytest.raises(TransientAuthError):
            await token_manager.get_valid_access_token(user_id)

        assert memory_store.get(user_id, PROVIDER) == original

        assert await token_manager.get_valid_access_token(user_id) == "ya29.after-retry"
        assert fake_provider.refresh.await_count == 2

    @pytest.mark.asyncio
    async def test_unclassified_provider_error_is_transient(
        self, token_manager, memory_store, fake_provider
    ):
        """Should never leak a raw provider exception."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))
        fake_provider.refresh.side_effect = ProviderError("weird")

        with pytest.raises(TransientAuthError):
            await token_manager.get_valid_access_token(user_id)

        assert memory_store.get(user_id, PROVIDER) is not None

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token_requires_reauth(
        self, token_manager, memory_store, fake_provider
    ):
        """Should purge a record that can never be refreshed."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(refresh_token=None, expires_in=10))

        with pytest.raises(ReauthRequired):
            await token_manager.get_valid_access_token(user_id)

        assert memory_store.get(user_id, PROVIDER) is None
        fake_provider.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_persist_failure_withholds_new_token(
        self, token_manager, memory_store, fake_provider
    ):
        """Should fail the refresh and keep the old record when the write fails."""
        user_id = uuid.uuid4()
        original = make_record(expires_in=10)
        memory_store.put(user_id, PROVIDER, original)
        memory_store.fail_writes = True

        with pytest.raises(TransientAuthError):
            await token_manager.get_valid_access_token(user_id)

        memory_store.fail_writes = False
        assert memory_store.get(user_id, PROVIDER) == original

    @pytest.mark.asyncio
    async def test_purge_failure_still_requires_reauth(
        self, token_manager, memory_store, fake_provider
    ):
        """Should report ReauthRequired even if the dead record could not be deleted."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))
        fake_provider.refresh.side_effect = InvalidGrantError("revoked")
        memory_store.fail_writes = True

        with pytest.raises(ReauthRequired):
            await token_manager.get_valid_access_token(user_id)


# ---------------------------------------------------------------------------
# SINGLE FLIGHT
# ---------------------------------------------------------------------------

class TestSingleFlight:
    """Tests for per-user refresh deduplication."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(
        self, token_manager, memory_store, fake_provider
    ):
        """Should call the provider once for ten simultaneous callers."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        tokens = await asyncio.gather(
            *[token_manager.get_valid_access_token(user_id) for _ in range(10)]
        )

        assert set(tokens) == {"ya29.new-access"}
        assert fake_provider.refresh.await_count == 1
        assert memory_store.put_count == 2  # seed + one refresh

    @pytest.mark.asyncio
    async def test_two_callers_inside_margin(self, token_manager, memory_store, fake_provider):
        """Should give both callers the new token and store exactly the new record."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        first, second = await asyncio.gather(
            token_manager.get_valid_access_token(user_id),
            token_manager.get_valid_access_token(user_id),
        )

        assert first == second == "ya29.new-access"
        assert fake_provider.refresh.await_count == 1
        assert len(memory_store.records) == 1
        assert memory_store.get(user_id, PROVIDER).access_token == "ya29.new-access"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_failure(
        self, token_manager, memory_store, fake_provider
    ):
        """Should give every waiter the same classified failure."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))
        fake_provider.refresh.side_effect = InvalidGrantError("revoked")

        results = await asyncio.gather(
            *[token_manager.get_valid_access_token(user_id) for _ in range(5)],
            return_exceptions=True,
        )

        assert all(isinstance(result, ReauthRequired) for result in results)
        assert fake_provider.refresh.await_count == 1

    @pytest.mark.asyncio
    async def test_users_refresh_independently(self, token_manager, memory_store, fake_provider):
        """Should not make one user's refresh wait on another's."""
        slow_user, fast_user = uuid.uuid4(), uuid.uuid4()
        memory_store.put(slow_user, PROVIDER, make_record(refresh_token="1//slow", expires_in=10))
        memory_store.put(fast_user, PROVIDER, make_record(refresh_token="1//fast", expires_in=10))

        release = asyncio.Event()

        async def refresh(refresh_token):
            if refresh_token == "1//slow":
                await release.wait()
                return make_tokens(access_token="ya29.slow")
            return make_tokens(access_token="ya29.fast")

        fake_provider.refresh.side_effect = refresh

        slow = asyncio.create_task(token_manager.get_valid_access_token(slow_user))
        await asyncio.sleep(0)

        fast_token = await asyncio.wait_for(token_manager.get_valid_access_token(fast_user), 1)

        assert fast_token == "ya29.fast"
        assert not slow.done()

        release.set()
        assert await slow == "ya29.slow"
        assert fake_provider.refresh.await_count == 2

    @pytest.mark.asyncio
    async def test_registry_is_emptied_after_refresh(self, token_manager, memory_store):
        """Should drop the in-flight entry once the refresh settles."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        await token_manager.get_valid_access_token(user_id)
        await _drain(token_manager, user_id)

        assert not token_manager.is_refreshing(user_id)


# ---------------------------------------------------------------------------
# CANCELLATION
# ---------------------------------------------------------------------------

class TestCancellation:
    """Tests for callers that give up while a refresh is in flight."""

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_refresh(
        self, token_manager, memory_store, fake_provider
    ):
        """Should finish and persist the refresh after its only caller is cancelled."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        release = asyncio.Event()

        async def refresh(refresh_token):
            await release.wait()
            return make_tokens(access_token="ya29.finished")

        fake_provider.refresh.side_effect = refresh

        caller = asyncio.create_task(token_manager.get_valid_access_token(user_id))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert token_manager.is_refreshing(user_id)

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        release.set()
        await _drain(token_manager, user_id)

        assert memory_store.get(user_id, PROVIDER).access_token == "ya29.finished"
        assert fake_provider.refresh.await_count == 1

    @pytest.mark.asyncio
    async def test_orphaned_failure_is_not_reraised(self, token_manager, memory_store, fake_provider):
        """Should settle a failed refresh nobody is waiting on."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        release = asyncio.Event()

        async def refresh(refresh_token):
            await release.wait()
            raise TransientProviderError("HTTP 500")

        fake_provider.refresh.side_effect = refresh

        caller = asyncio.create_task(token_manager.get_valid_access_token(user_id))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        release.set()
        await _drain(token_manager, user_id)

        assert not token_manager.is_refreshing(user_id)
        assert memory_store.get(user_id, PROVIDER).access_token == "ya29.old-access"


# ---------------------------------------------------------------------------
# CONNECT / STATUS / DISCONNECT
# ---------------------------------------------------------------------------

class TestSaveConnection:
    """Tests for persisting a completed code exchange."""

    @pytest.mark.asyncio
    async def test_save_defaults_calendar_id(self, token_manager, memory_store):
        """Should store "primary" when no calendar was chosen."""
        user_id = uuid.uuid4()

        record = await token_manager.save_connection(user_id, make_tokens(refresh_token="1//first"))

        assert record.calendar_id == "primary"
        assert memory_store.get(user_id, PROVIDER) == record

    @pytest.mark.asyncio
    async def test_reconnect_overwrites(self, token_manager, memory_store):
        """Should leave exactly one record after two connects."""
        user_id = uuid.uuid4()

        await token_manager.save_connection(user_id, make_tokens("ya29.one", "1//one"))
        await token_manager.save_connection(user_id, make_tokens("ya29.two", "1//two"))

        assert len(memory_store.records) == 1
        stored = memory_store.get(user_id, PROVIDER)
        assert stored.access_token == "ya29.two"
        assert stored.refresh_token == "1//two"

    @pytest.mark.asyncio
    async def test_reconnect_without_refresh_token_keeps_old_one(self, token_manager, memory_store):
        """Should keep the refresh token Google did not resend, and the chosen calendar."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(calendar_id="team@example.com"))

        await token_manager.save_connection(user_id, make_tokens("ya29.again", refresh_token=None))

        stored = memory_store.get(user_id, PROVIDER)
        assert stored.access_token == "ya29.again"
        assert stored.refresh_token == "1//refresh-old"
        assert stored.calendar_id == "team@example.com"

    @pytest.mark.asyncio
    async def test_connect_lands_after_inflight_refresh(
        self, token_manager, memory_store, fake_provider
    ):
        """Should not let an older refresh overwrite a newer grant."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        release = asyncio.Event()

        async def refresh(refresh_token):
            await release.wait()
            return make_tokens(access_token="ya29.stale-refresh")

        fake_provider.refresh.side_effect = refresh

        reader = asyncio.create_task(token_manager.get_valid_access_token(user_id))
        await asyncio.sleep(0)

        saver = asyncio.create_task(
            token_manager.save_connection(user_id, make_tokens("ya29.new-grant", "1//new-grant"))
        )
        await asyncio.sleep(0)
        assert not saver.done()

        release.set()
        await asyncio.gather(reader, saver)

        stored = memory_store.get(user_id, PROVIDER)
        assert stored.access_token == "ya29.new-grant"
        assert stored.refresh_token == "1//new-grant"

    @pytest.mark.asyncio
    async def test_save_store_failure_is_transient(self, token_manager, memory_store):
        """Should surface a failed write as TransientAuthError."""
        memory_store.fail_writes = True

        with pytest.raises(TransientAuthError):
            await token_manager.save_connection(uuid.uuid4(), make_tokens())


class TestStatusAndDisconnect:
    """Tests for connection_status and disconnect."""

    def test_status_not_connected(self, token_manager):
        """Should report no connection and no calendar id."""
        status = token_manager.connection_status(uuid.uuid4())

        assert status.connected is False
        assert status.calendar_id is None

    def test_status_connected_with_expired_token(self, token_manager, memory_store, fake_provider):
        """Should report connected from the stored record without refreshing."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=-600, calendar_id="primary"))

        status = token_manager.connection_status(user_id)

        assert status.connected is True
        assert status.calendar_id == "primary"
        fake_provider.refresh.assert_not_awaited()

    def test_status_refresh_token_only_is_connected(self, token_manager, memory_store):
        """Should count a record holding only a refresh token as connected."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(access_token=None, expires_in=None))

        assert token_manager.connection_status(user_id).connected is True

    @pytest.mark.asyncio
    async def test_disconnect_revokes_and_deletes(self, token_manager, memory_store, fake_provider):
        """Should revoke the refresh token and remove the record."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record())

        assert await token_manager.disconnect(user_id) is True

        fake_provider.revoke.assert_awaited_once_with("1//refresh-old")
        assert memory_store.get(user_id, PROVIDER) is None

    @pytest.mark.asyncio
    async def test_disconnect_deletes_even_if_revoke_fails(
        self, token_manager, memory_store, fake_provider
    ):
        """Should forget the grant locally when the provider refuses revocation."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record())
        fake_provider.revoke.return_value = False

        assert await token_manager.disconnect(user_id) is True
        assert memory_store.get(user_id, PROVIDER) is None

    @pytest.mark.asyncio
    async def test_disconnect_nothing_connected(self, token_manager, fake_provider):
        """Should return False and not call the provider."""
        assert await token_manager.disconnect(uuid.uuid4()) is False
        fake_provider.revoke.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_cannot_restore_disconnected_grant(
        self, token_manager, memory_store, fake_provider
    ):
        """Should refuse a refresh requested while the revocation is in progress."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        revoke_started = asyncio.Event()
        release_revoke = asyncio.Event()

        async def revoke(token):
            revoke_started.set()
            await release_revoke.wait()
            return True

        fake_provider.revoke.side_effect = revoke
        fake_provider.refresh.return_value = make_tokens(access_token="ya29.after-disconnect")

        disconnect = asyncio.create_task(token_manager.disconnect(user_id))
        await revoke_started.wait()

        with pytest.raises(NotConnected):
            await token_manager.get_valid_access_token(user_id)

        release_revoke.set()
        assert await disconnect is True

        fake_provider.refresh.assert_not_awaited()
        assert memory_store.get(user_id, PROVIDER) is None
        assert not token_manager.is_refreshing(user_id)

    @pytest.mark.asyncio
    async def test_disconnect_waits_for_running_refresh(
        self, token_manager, memory_store, fake_provider
    ):
        """Should delete the record only after a refresh already in flight has landed."""
        user_id = uuid.uuid4()
        memory_store.put(user_id, PROVIDER, make_record(expires_in=10))

        release = asyncio.Event()

        async def refresh(refresh_token):
            await release.wait()
            return make_tokens(access_token="ya29.in-flight")

        fake_provider.refresh.side_effect = refresh

        getter = asyncio.create_task(token_manager.get_valid_access_token(user_id))
        await asyncio.sleep(0)
        assert token_manager.is_refreshing(user_id)

        disconnect = asyncio.create_task(token_manager.disconnect(user_id))
        await asyncio.sleep(0)
        release.set()

        assert await getter == "ya29.in-flight"
        assert await disconnect is True
        assert memory_store.get(user_id, PROVIDER) is None
