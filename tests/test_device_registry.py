"""Tests for the device token registry and queue storage."""

import pytest
from sqlalchemy.exc import OperationalError

from dreampush.exceptions import PushErrorKind, StorageError
from dreampush.models.device_token import DeviceToken, DevicePlatform
from dreampush.models.push_notification_queue import QueueStatus
from dreampush.services.device_registry import DeviceTokenRegistry
from dreampush.services.notification_queue import NotificationQueue
from dreampush.utils.datetime import utc_now


def _broken_execute(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("database is locked"))


class TestUpsert:

    def test_creates_then_refreshes(self, db_session, dreamer):
        registry = DeviceTokenRegistry(db_session)

        row, created = registry.upsert(dreamer.id, "tok-1", DevicePlatform.android, {"language": "en"})
        assert created is True

        again, created = registry.upsert(dreamer.id, "tok-1", DevicePlatform.android, {"language": "tr"})
        assert created is False
        assert again.id == row.id
        assert again.device_info == {"language": "tr"}
        assert db_session.query(DeviceToken).count() == 1

    def test_same_token_for_two_users(self, db_session, make_user):
        registry = DeviceTokenRegistry(db_session)
        first, second = make_user(), make_user()

        registry.upsert(first.id, "shared", DevicePlatform.web)
        registry.upsert(second.id, "shared", DevicePlatform.web)

        assert db_session.query(DeviceToken).count() == 2

    def test_refresh_reactivates(self, db_session, dreamer, add_token):
        add_token(dreamer, "tok-1", "ios", active=False)
        row, created = DeviceTokenRegistry(db_session).upsert(dreamer.id, "tok-1", DevicePlatform.ios)
        assert created is False
        assert row.is_active is True


class TestReads:

    def test_list_active_skips_inactive(self, db_session, dreamer, add_token):
        add_token(dreamer, "on", "android")
        add_token(dreamer, "off", "web", active=False)

        registry = DeviceTokenRegistry(db_session)
        assert [t.token for t in registry.list_active(dreamer.id)] == ["on"]
        assert len(registry.list_for_user(dreamer.id)) == 2

    def test_fetch_active_tokens_pairs(self, db_session, dreamer, make_user, add_token):
        add_token(dreamer, "mine", "ios")
        add_token(make_user(), "theirs", "android")

        pairs = DeviceTokenRegistry(db_session).fetch_active_tokens(dreamer.id)

        assert pairs == [("mine", "ios")]

    def test_fetch_active_tokens_storage_error(self, db_session, dreamer, monkeypatch):
        monkeypatch.setattr(db_session, "execute", _broken_execute)
        with pytest.raises(StorageError) as exc:
            DeviceTokenRegistry(db_session).fetch_active_tokens(dreamer.id)
        assert exc.value.kind == PushErrorKind.storage


class TestDeactivate:

    def test_deactivate_hits_every_owner(self, db_session, make_user, add_token):
        a, b = make_user(), make_user()
        add_token(a, "shared", "web")
        add_token(b, "shared", "web")

        changed = DeviceTokenRegistry(db_session).deactivate("shared")

        assert changed == 2
        db_session.expire_all()
        assert all(not t.is_active for t in db_session.query(DeviceToken).all())

    def test_deactivate_twice_is_harmless(self, db_session, dreamer, add_token):
        add_token(dreamer, "tok", "android")
        registry = DeviceTokenRegistry(db_session)
        assert registry.deactivate("tok") == 1
        assert registry.deactivate("tok") == 0

    def test_deactivate_for_user_is_scoped(self, db_session, dreamer, make_user, add_token):
        add_token(dreamer, "tok", "android")
        stranger = make_user()

        registry = DeviceTokenRegistry(db_session)
        assert registry.deactivate_for_user(stranger.id, "tok") is False
        assert registry.deactivate_for_user(dreamer.id, "tok") is True


class TestNotificationQueue:

    def test_enqueue_is_pending(self, db_session, dreamer):
        row = NotificationQueue(db_session).enqueue(dreamer.id, "t", "b", {"type": "message"})
        assert row.status == QueueStatus.pending
        assert row.sent_at is None

    def test_list_pending_is_fifo_and_bounded(self, db_session, dreamer, enqueue):
        first = enqueue(dreamer.id, title="1")
        enqueue(dreamer.id, title="done", status=QueueStatus.sent)
        second = enqueue(dreamer.id, title="2")
        enqueue(dreamer.id, title="3")

        pending = NotificationQueue(db_session).list_pending(2)

        assert [n.id for n in pending] == [first.id, second.id]

    def test_mark_is_conditional(self, db_session, dreamer, enqueue):
        row = enqueue(dreamer.id)
        queue = NotificationQueue(db_session)

        assert queue.mark_failed(row.id, "No device tokens found", utc_now()) is True
        assert queue.mark_sent(row.id, utc_now()) is False

        db_session.expire_all()
        assert row.status == QueueStatus.failed
        assert row.error_message == "No device tokens found"

    def test_list_pending_storage_error(self, db_session, monkeypatch):
        monkeypatch.setattr(db_session, "execute", _broken_execute)
        with pytest.raises(StorageError):
            NotificationQueue(db_session).list_pending(10)
