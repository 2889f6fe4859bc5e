# Overview: Cached notification reads and optimistic notification mutations.

"""
Notification Sync

WHY: The header bell shows an unread badge and a dropdown; the notifications
page shows a filtered list. Toggling read state, marking everything read and
deleting update every cached copy immediately and roll back on failure.

UNREAD BADGE RULES:
- Decremented only when the notification is known (from any cached copy) to
  be unread, and never below zero
- Incremented only when the notification is known to be read
- Unknown read state leaves the badge alone until the server answers
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from .api import NotificationsApi
from .mutations import OptimisticMutation
from .query_cache import NotificationKeys, QueryCache, iter_items, transform_items
from .toast import Toaster


MSG_MARK_READ_FAILED = "Error al marcar la notificacion como leida"
MSG_MARK_UNREAD_FAILED = "Error al marcar la notificacion como no leida"
MSG_MARK_MANY_FAILED = "Error al marcar las notificaciones como leidas"
MSG_MARK_ALL_FAILED = "Error al marcar todas las notificaciones como leidas"
MSG_DELETE_FAILED = "Error al eliminar la notificacion"
MSG_DELETE_MANY_FAILED = "Error al eliminar las notificaciones"
MSG_CLEAR_READ_FAILED = "Error al limpiar las notificaciones leidas"
MSG_CREATE_FAILED = "Error al crear la notificacion"


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _plural(count: int, one: str, many: str) -> str:
    return one if count == 1 else many.format(count=count)


class NotificationSync:
    def __init__(
        self,
        api: NotificationsApi,
        cache: Optional[QueryCache] = None,
        toaster: Optional[Toaster] = None,
        mutation: Optional[OptimisticMutation] = None,
    ):
        self.api = api
        self.cache = cache or QueryCache()
        self.toaster = toaster or Toaster()
        self.mutation = mutation or OptimisticMutation(self.cache, self.toaster)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list(self, filters: Optional[Dict] = None, *, force: bool = False) -> Dict:
        filters = filters or {}
        return self.cache.fetch(
            NotificationKeys.list(filters), lambda: self.api.get_notifications(filters), force=force,
        )

    def get(self, notification_id, *, force: bool = False) -> Dict:
        return self.cache.fetch(
            NotificationKeys.detail(notification_id),
            lambda: self.api.get_notification(notification_id),
            force=force,
        )

    def recent(self, limit: int = 5, *, force: bool = False) -> List[Dict]:
        return self.cache.fetch(
            NotificationKeys.recent(limit), lambda: self.api.get_recent_notifications(limit), force=force,
        )

    def unread_count(self, *, force: bool = False) -> int:
        data = self.cache.fetch(NotificationKeys.unread_count(), self.api.get_unread_count, force=force)
        return int((data or {}).get("count", 0))

    # =========================================================================
    # CACHE HELPERS
    # =========================================================================

    def known_read_state(self, notification_id) -> Optional[bool]:
        """Read flag from the detail cache, else from any cached list; None if unknown."""
        detail = self.cache.get(NotificationKeys.detail(notification_id))
        if isinstance(detail, dict) and "read" in detail:
            return bool(detail["read"])

        wanted = str(notification_id)
        for prefix in (NotificationKeys.list(), NotificationKeys.recent()):
            for _key, value in self.cache.items(prefix):
                for item in iter_items(value):
                    if str(item.get("id")) == wanted and "read" in item:
                        return bool(item["read"])
        return None

    def _affected(self, notification_id) -> list:
        return [
            NotificationKeys.detail(notification_id),
            NotificationKeys.list(),
            NotificationKeys.recent(),
            NotificationKeys.unread_count(),
        ]

    def _patch_everywhere(self, cache: QueryCache, notification_id, changes: Dict) -> None:
        wanted = str(notification_id)

        def _patch_item(item):
            if str(item.get("id")) == wanted:
                item.update(changes)
            return item

        cache.update(NotificationKeys.detail(notification_id), lambda d: {**d, **changes} if isinstance(d, dict) else d)
        cache.update_matching(NotificationKeys.list(), lambda v: transform_items(v, _patch_item))
        cache.update_matching(NotificationKeys.recent(), lambda v: transform_items(v, _patch_item))

    def _shift_unread(self, cache: QueryCache, delta: int) -> None:
        """Adjust the badge and list meta counters, clamped at zero."""
        def _count(data):
            if not isinstance(data, dict):
                return data
            return {**data, "count": max(0, int(data.get("count", 0)) + delta)}

        def _meta(value):
            if isinstance(value, dict) and isinstance(value.get("meta"), dict) and "unread_count" in value["meta"]:
                meta = dict(value["meta"])
                meta["unread_count"] = max(0, int(meta["unread_count"]) + delta)
                return {**value, "meta": meta}
            return value

        cache.update(NotificationKeys.unread_count(), _count)
        cache.update_matching(NotificationKeys.list(), _meta)

    def _after_single_change(self, notification: Dict) -> None:
        if isinstance(notification, dict) and notification.get("id") is not None:
            self.cache.set(NotificationKeys.detail(notification["id"]), notification)
        self.cache.invalidate(NotificationKeys.list())
        self.cache.invalidate(NotificationKeys.recent())
        self.cache.invalidate(NotificationKeys.unread_count())

    # =========================================================================
    # OPTIMISTIC MUTATIONS
    # =========================================================================

    def mark_as_read(self, notification_id) -> Dict:
        def _apply(cache):
            if self.known_read_state(notification_id) is not False:
                return
            now = _now_iso()
            self._patch_everywhere(cache, notification_id, {"read": True, "read_at": now, "updated_at": now})
            self._shift_unread(cache, -1)

        return self.mutation.run(
            lambda: self.api.mark_as_read(notification_id),
            fallback_message=MSG_MARK_READ_FAILED,
            affected=self._affected(notification_id),
            lock_key=NotificationKeys.detail(notification_id),
            apply=_apply,
            on_success=self._after_single_change,
        )

    def mark_as_unread(self, notification_id) -> Dict:
        def _apply(cache):
            if self.known_read_state(notification_id) is not True:
                return
            self._patch_everywhere(cache, notification_id, {"read": False, "read_at": None, "updated_at": _now_iso()})
            self._shift_unread(cache, +1)

        return self.mutation.run(
            lambda: self.api.mark_as_unread(notification_id),
            fallback_message=MSG_MARK_UNREAD_FAILED,
            affected=self._affected(notification_id),
            lock_key=NotificationKeys.detail(notification_id),
            apply=_apply,
            on_success=self._after_single_change,
        )

    def mark_all_as_read(self) -> Dict:
        def _apply(cache):
            now = _now_iso()

            def _read(item):
                if not item.get("read"):
                    item.update({"read": True, "read_at": now, "updated_at": now})
                return item

            def _zero_meta(value):
                value = transform_items(value, _read)
                if isinstance(value, dict) and isinstance(value.get("meta"), dict) and "unread_count" in value["meta"]:
                    value = {**value, "meta": {**value["meta"], "unread_count": 0}}
                return value

            cache.update(
                NotificationKeys.unread_count(),
                lambda d: {**d, "count": 0} if isinstance(d, dict) else d,
            )
            cache.update_matching(NotificationKeys.list(), _zero_meta)
            cache.update_matching(NotificationKeys.recent(), lambda v: transform_items(v, _read))
            cache.update_matching(
                ("notifications", "detail"),
                lambda d: _read(dict(d)) if isinstance(d, dict) else d,
            )

        def _success(result):
            self.cache.invalidate(NotificationKeys.all)

        def _message(result):
            if (result or {}).get("updated_count", 0) > 0:
                return "Todas las notificaciones marcadas como leidas"
            return None

        return self.mutation.run(
            self.api.mark_all_as_read,
            fallback_message=MSG_MARK_ALL_FAILED,
            affected=[NotificationKeys.all],
            lock_key=NotificationKeys.all,
            apply=_apply,
            on_success=_success,
            success_message=_message,
        )

    def delete(self, notification_id) -> None:
        wanted = str(notification_id)

        def _apply(cache):
            was_unread = self.known_read_state(notification_id) is False

            def _drop(item):
                return None if str(item.get("id")) == wanted else item

            def _drop_with_total(value):
                new_value = transform_items(value, _drop)
                if isinstance(value, dict) and isinstance(value.get("meta"), dict):
                    removed = len(value.get("data") or []) - len(new_value.get("data") or [])
                    if removed and "total" in value["meta"]:
                        meta = dict(new_value["meta"])
                        meta["total"] = max(0, int(meta["total"]) - removed)
                        new_value = {**new_value, "meta": meta}
                return new_value

            cache.update_matching(NotificationKeys.list(), _drop_with_total)
            cache.update_matching(NotificationKeys.recent(), lambda v: transform_items(v, _drop))
            cache.remove(NotificationKeys.detail(notification_id))
            if was_unread:
                self._shift_unread(cache, -1)

        def _success(_result):
            self.cache.remove(NotificationKeys.detail(notification_id))
            self.cache.invalidate(NotificationKeys.all)

        self.mutation.run(
            lambda: self.api.delete_notification(notification_id),
            fallback_message=MSG_DELETE_FAILED,
            affected=self._affected(notification_id),
            lock_key=NotificationKeys.detail(notification_id),
            apply=_apply,
            on_success=_success,
            success_message="Notificacion eliminada",
        )

    # =========================================================================
    # SERVER-CONFIRMED MUTATIONS
    # =========================================================================

    def _invalidate_all(self, _result=None) -> None:
        self.cache.invalidate(NotificationKeys.all)

    def mark_multiple_as_read(self, ids: List) -> Dict:
        def _message(result):
            count = (result or {}).get("updated_count", 0)
            if count <= 0:
                return None
            return _plural(count, "1 notificacion marcada como leida", "{count} notificaciones marcadas como leidas")

        return self.mutation.run(
            lambda: self.api.mark_multiple_as_read(ids),
            fallback_message=MSG_MARK_MANY_FAILED,
            on_success=self._invalidate_all,
            success_message=_message,
        )

    def delete_multiple(self, ids: List) -> Dict:
        def _message(result):
            count = (result or {}).get("deleted_count", 0)
            if count <= 0:
                return None
            return _plural(count, "1 notificacion eliminada", "{count} notificaciones eliminadas")

        return self.mutation.run(
            lambda: self.api.delete_multiple_notifications(ids),
            fallback_message=MSG_DELETE_MANY_FAILED,
            on_success=self._invalidate_all,
            success_message=_message,
        )

    def clear_read(self) -> Dict:
        def _success(result):
            self._invalidate_all()
            if (result or {}).get("deleted_count", 0) <= 0:
                self.toaster.info("No hay notificaciones leidas para eliminar")

        def _message(result):
            count = (result or {}).get("deleted_count", 0)
            if count <= 0:
                return None
            return _plural(count, "1 notificacion leida eliminada", "{count} notificaciones leidas eliminadas")

        return self.mutation.run(
            self.api.clear_read_notifications,
            fallback_message=MSG_CLEAR_READ_FAILED,
            on_success=_success,
            success_message=_message,
        )

    def create(self, data: Dict) -> Dict:
        return self.mutation.run(
            lambda: self.api.create_notification(data),
            fallback_message=MSG_CREATE_FAILED,
            on_success=self._invalidate_all,
            success_message=lambda n: f'Notificacion "{n.get("title", "")}" creada',
        )
