# Overview: Pytest coverage for optimistic notification updates and rollback.

"""
Notification Sync Tests

Covers:
- Optimistic read/unread toggles and the unread badge rules
- Rollback of every cached copy when the server rejects a change
- Server message vs fallback message on failure
- Same-notification mutations running one at a time
"""

import json
import threading
import time

import httpx
import pytest

from stockflow_client import ApiError, MutationError, NotificationKeys, NotificationSync, QueryCache, Toaster


def _notification(notification_id, read=False, **extra):
    data = {
        "id": notification_id,
        "type": "INFO",
        "title": f"Aviso {notification_id}",
        "message": "...",
        "priority": "MEDIUM",
        "read": read,
        "read_at": "2024-05-01T10:00:00Z" if read else None,
    }
    data.update(extra)
    return data


class FakeNotificationsApi:
    """In-process stand-in for NotificationsApi; set `fail` to make mutations raise."""

    def __init__(self):
        self.fail = None
        self.calls = []
        self.on_call = None
        self.unread = 0

    def _mutate(self, name, result):
        self.calls.append(name)
        if self.on_call is not None:
            self.on_call(name)
        if self.fail is not None:
            raise self.fail
        return result

    def get_unread_count(self):
        return {"count": self.unread}

    def get_notification(self, notification_id):
        return _notification(notification_id)

    def get_notifications(self, filters=None):
        return {"data": [], "meta": {"total": 0, "unread_count": self.unread}}

    def get_recent_notifications(self, limit=5):
        return []

    def mark_as_read(self, notification_id):
        return self._mutate("mark_as_read", _notification(notification_id, read=True, title="server"))

    def mark_as_unread(self, notification_id):
        return self._mutate("mark_as_unread", _notification(notification_id, read=False, title="server"))

    def mark_all_as_read(self):
        return self._mutate("mark_all_as_read", {"success": True, "updated_count": 2})

    def mark_multiple_as_read(self, ids):
        return self._mutate("mark_multiple_as_read", {"success": True, "updated_count": len(ids)})

    def delete_notification(self, notification_id):
        return self._mutate("delete_notification", None)

    def delete_multiple_notifications(self, ids):
        return self._mutate("delete_multiple_notifications", {"success": True, "deleted_count": len(ids)})

    def clear_read_notifications(self):
        return self._mutate("clear_read_notifications", {"success": True, "deleted_count": 0})

    def create_notification(self, data):
        return self._mutate("create_notification", {"id": 50, **data})


@pytest.fixture
def api():
    return FakeNotificationsApi()


@pytest.fixture
def sync(api):
    return NotificationSync(api, cache=QueryCache(), toaster=Toaster())


def _seed(sync, *, unread_count, detail=None, list_items=None):
    cache = sync.cache
    cache.set(NotificationKeys.unread_count(), {"count": unread_count})
    if detail is not None:
        cache.set(NotificationKeys.detail(detail["id"]), detail)
    if list_items is not None:
        cache.set(
            NotificationKeys.list({"page": 1}),
            {"data": list_items, "meta": {"total": len(list_items), "unread_count": unread_count}},
        )
        cache.set(NotificationKeys.recent(5), list(list_items))


class TestMarkAsRead:
    def test_optimistic_update_visible_during_call(self, api, sync):
        _seed(sync, unread_count=3, detail=_notification(1), list_items=[_notification(1), _notification(2)])
        seen = {}

        def _inspect(_name):
            seen["count"] = sync.cache.get(NotificationKeys.unread_count())["count"]
            seen["detail_read"] = sync.cache.get(NotificationKeys.detail(1))["read"]
            seen["list_read"] = sync.cache.get(NotificationKeys.list({"page": 1}))["data"][0]["read"]
            seen["meta_unread"] = sync.cache.get(NotificationKeys.list({"page": 1}))["meta"]["unread_count"]

        api.on_call = _inspect
        sync.mark_as_read(1)

        assert seen == {"count": 2, "detail_read": True, "list_read": True, "meta_unread": 2}

    def test_success_writes_server_entity_and_invalidates(self, api, sync):
        _seed(sync, unread_count=3, detail=_notification(1), list_items=[_notification(1)])

        result = sync.mark_as_read(1)

        assert result["title"] == "server"
        assert sync.cache.get(NotificationKeys.detail(1))["title"] == "server"
        assert not sync.cache.is_stale(NotificationKeys.detail(1))
        assert sync.cache.is_stale(NotificationKeys.unread_count())
        assert sync.cache.is_stale(NotificationKeys.list({"page": 1}))
        assert sync.cache.is_stale(NotificationKeys.recent(5))

    def test_failure_restores_every_cached_copy(self, api, sync):
        _seed(sync, unread_count=3, detail=_notification(1), list_items=[_notification(1), _notification(2)])
        before = {key: value for key, value in sync.cache.items(NotificationKeys.all)}
        api.fail = ApiError("Servidor no disponible", status_code=503)

        with pytest.raises(MutationError):
            sync.mark_as_read(1)

        after = {key: value for key, value in sync.cache.items(NotificationKeys.all)}
        assert after == before
        assert sync.toaster.last.level == "error"
        assert sync.toaster.last.message == "Servidor no disponible"

    def test_failure_without_server_message_uses_fallback(self, api, sync):
        _seed(sync, unread_count=1, detail=_notification(1))
        api.fail = ApiError("", status_code=500)

        with pytest.raises(MutationError) as exc_info:
            sync.mark_as_read(1)

        assert exc_info.value.message == "Error al marcar la notificacion como leida"
        assert sync.toaster.last.message == "Error al marcar la notificacion como leida"

    def test_transport_error_rolls_back(self, api, sync):
        _seed(sync, unread_count=2, detail=_notification(1))
        api.fail = httpx.ConnectTimeout("timed out")

        with pytest.raises(MutationError):
            sync.mark_as_read(1)

        assert sync.cache.get(NotificationKeys.unread_count()) == {"count": 2}
        assert sync.cache.get(NotificationKeys.detail(1))["read"] is False

    def test_non_http_failure_rolls_back(self, api, sync):
        _seed(sync, unread_count=3, detail=_notification(1))
        api.fail = json.JSONDecodeError("Expecting value", "<html>", 0)

        with pytest.raises(MutationError):
            sync.mark_as_read(1)

        assert sync.cache.get(NotificationKeys.unread_count()) == {"count": 3}
        assert sync.toaster.last.message == "Error al marcar la notificacion como leida"

    def test_already_read_does_not_decrement(self, api, sync):
        _seed(sync, unread_count=3, detail=_notification(1, read=True))
        seen = []
        api.on_call = lambda _n: seen.append(sync.cache.get(NotificationKeys.unread_count())["count"])

        sync.mark_as_read(1)

        assert seen == [3]

    def test_unknown_state_does_not_decrement(self, api, sync):
        _seed(sync, unread_count=3)
        seen = []
        api.on_call = lambda _n: seen.append(sync.cache.get(NotificationKeys.unread_count())["count"])

        sync.mark_as_read(42)

        assert seen == [3]

    def test_state_known_from_list_only(self, api, sync):
        _seed(sync, unread_count=3, list_items=[_notification(7)])
        seen = []
        api.on_call = lambda _n: seen.append(sync.cache.get(NotificationKeys.unread_count())["count"])

        sync.mark_as_read(7)

        assert seen == [2]

    def test_count_never_negative(self, api, sync):
        _seed(sync, unread_count=0, detail=_notification(1))
        seen = []
        api.on_call = lambda _n: seen.append(sync.cache.get(NotificationKeys.unread_count())["count"])

        sync.mark_as_read(1)

        assert seen == [0]


class TestMarkAsUnread:
    def test_known_read_increments(self, api, sync):
        _seed(sync, unread_count=0, detail=_notification(1, read=True))
        seen = []

        def _inspect(_name):
            detail = sync.cache.get(NotificationKeys.detail(1))
            seen.append((sync.cache.get(NotificationKeys.unread_count())["count"], detail["read"], detail["read_at"]))

        api.on_call = _inspect
        sync.mark_as_unread(1)

        assert seen == [(1, False, None)]

    def test_known_unread_does_not_increment(self, api, sync):
        _seed(sync, unread_count=4, detail=_notification(1, read=False))
        seen = []
        api.on_call = lambda _n: seen.append(sync.cache.get(NotificationKeys.unread_count())["count"])

        sync.mark_as_unread(1)

        assert seen == [4]

    def test_failure_rolls_back(self, api, sync):
        _seed(sync, unread_count=0, detail=_notification(1, read=True))
        api.fail = ApiError("", status_code=500)

        with pytest.raises(MutationError, match="como no leida"):
            sync.mark_as_unread(1)

        assert sync.cache.get(NotificationKeys.unread_count()) == {"count": 0}
        assert sync.cache.get(NotificationKeys.detail(1))["read"] is True


class TestMarkAllAsRead:
    def test_optimistic_zero_and_rollback(self, api, sync):
        _seed(sync, unread_count=5, detail=_notification(1), list_items=[_notification(1), _notification(2)])
        seen = {}

        def _inspect(_name):
            seen["count"] = sync.cache.get(NotificationKeys.unread_count())["count"]
            seen["items"] = [n["read"] for n in sync.cache.get(NotificationKeys.list({"page": 1}))["data"]]
            seen["detail"] = sync.cache.get(NotificationKeys.detail(1))["read"]

        api.on_call = _inspect
        api.fail = ApiError("No autorizado", status_code=401)
        before = dict(sync.cache.items(NotificationKeys.all))

        with pytest.raises(MutationError, match="No autorizado"):
            sync.mark_all_as_read()

        assert seen == {"count": 0, "items": [True, True], "detail": True}
        assert dict(sync.cache.items(NotificationKeys.all)) == before

    def test_success_message(self, api, sync):
        _seed(sync, unread_count=2)

        sync.mark_all_as_read()

        assert sync.toaster.last.message == "Todas las notificaciones marcadas como leidas"
        assert sync.cache.is_stale(NotificationKeys.unread_count())


class TestDelete:
    def test_optimistic_removal(self, api, sync):
        _seed(sync, unread_count=2, detail=_notification(1), list_items=[_notification(1), _notification(2)])
        seen = {}

        def _inspect(_name):
            page = sync.cache.get(NotificationKeys.list({"page": 1}))
            seen["ids"] = [n["id"] for n in page["data"]]
            seen["total"] = page["meta"]["total"]
            seen["recent"] = [n["id"] for n in sync.cache.get(NotificationKeys.recent(5))]
            seen["count"] = sync.cache.get(NotificationKeys.unread_count())["count"]
            seen["detail"] = sync.cache.has(NotificationKeys.detail(1))

        api.on_call = _inspect
        sync.delete(1)

        assert seen == {"ids": [2], "total": 1, "recent": [2], "count": 1, "detail": False}
        assert not sync.cache.has(NotificationKeys.detail(1))
        assert sync.toaster.last.message == "Notificacion eliminada"

    def test_failure_restores_removed_entries(self, api, sync):
        _seed(sync, unread_count=2, detail=_notification(1), list_items=[_notification(1), _notification(2)])
        before = dict(sync.cache.items(NotificationKeys.all))
        api.fail = ApiError("", status_code=500)

        with pytest.raises(MutationError, match="Error al eliminar la notificacion"):
            sync.delete(1)

        assert dict(sync.cache.items(NotificationKeys.all)) == before


class TestServerConfirmedMutations:
    def test_bulk_messages(self, api, sync):
        sync.mark_multiple_as_read([1, 2, 3])
        assert sync.toaster.last.message == "3 notificaciones marcadas como leidas"

        sync.delete_multiple([9])
        assert sync.toaster.last.message == "1 notificacion eliminada"

        sync.clear_read()
        assert sync.toaster.last.level == "info"
        assert sync.toaster.last.message == "No hay notificaciones leidas para eliminar"

    def test_create_invalidates(self, api, sync):
        _seed(sync, unread_count=0)

        created = sync.create({"type": "INFO", "title": "Hola", "message": "Mundo"})

        assert created["id"] == 50
        assert sync.toaster.last.message == 'Notificacion "Hola" creada'
        assert sync.cache.is_stale(NotificationKeys.unread_count())

    def test_bulk_failure_uses_fallback(self, api, sync):
        api.fail = httpx.ReadTimeout("slow")

        with pytest.raises(MutationError, match="Error al eliminar las notificaciones"):
            sync.delete_multiple([1])


class TestQueriesAndConcurrency:
    def test_unread_count_is_cached(self, api, sync):
        api.unread = 4

        assert sync.unread_count() == 4
        api.unread = 9
        assert sync.unread_count() == 4
        assert sync.unread_count(force=True) == 9

    def test_same_notification_mutations_are_serialized(self, api, sync):
        _seed(sync, unread_count=10, detail=_notification(1))
        active = {"now": 0, "max": 0}
        lock = threading.Lock()

        def _slow(_name):
            with lock:
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
            time.sleep(0.05)
            with lock:
                active["now"] -= 1

        api.on_call = _slow
        threads = [
            threading.Thread(target=sync.mark_as_read, args=(1,)),
            threading.Thread(target=sync.mark_as_unread, args=(1,)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert active["max"] == 1
        assert api.calls.count("mark_as_read") == 1
        assert api.calls.count("mark_as_unread") == 1
