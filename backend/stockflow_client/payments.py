# Overview: Cached payment reads and payment mutations.

"""
Payment Sync

Updates, status changes and deletions patch cached copies first and roll back
on failure. Creation and refunds wait for the server (the refund may create a
new record whose number only the server knows) and then invalidate.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .api import PaymentsApi
from .mutations import OptimisticMutation
from .query_cache import PaymentKeys, QueryCache, transform_items
from .toast import Toaster


# Statuses whose payments only accept note edits on the server
NOTES_ONLY_STATUSES = {"COMPLETED", "REFUNDED", "CANCELLED"}

MSG_CREATE_FAILED = "Error al registrar el pago"
MSG_UPDATE_FAILED = "Error al actualizar el pago"
MSG_STATUS_FAILED = "Error al actualizar el estado del pago"
MSG_DELETE_FAILED = "Error al eliminar el pago"
MSG_REFUND_FAILED = "Error al procesar el reembolso"


class PaymentSync:
    def __init__(
        self,
        api: PaymentsApi,
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
        return self.cache.fetch(PaymentKeys.list(filters), lambda: self.api.get_payments(filters), force=force)

    def get(self, payment_id, *, force: bool = False) -> Dict:
        return self.cache.fetch(
            PaymentKeys.detail(payment_id), lambda: self.api.get_payment(payment_id), force=force,
        )

    def by_invoice(self, invoice_id, *, force: bool = False) -> List[Dict]:
        return self.cache.fetch(
            PaymentKeys.by_invoice(invoice_id),
            lambda: self.api.get_payments_by_invoice(invoice_id),
            force=force,
        )

    def by_customer(self, customer_id, *, force: bool = False) -> List[Dict]:
        return self.cache.fetch(
            PaymentKeys.by_customer(customer_id),
            lambda: self.api.get_payments_by_customer(customer_id),
            force=force,
        )

    def recent(self, *, force: bool = False) -> List[Dict]:
        return self.cache.fetch(PaymentKeys.recent(5), self.api.get_recent_payments, force=force)

    def stats(self, *, force: bool = False) -> Dict:
        return self.cache.fetch(PaymentKeys.stats(), self.api.get_payment_stats, force=force)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _collections(self) -> list:
        return [
            PaymentKeys.list(),
            PaymentKeys.recent(),
            PaymentKeys.by_invoice(),
            PaymentKeys.by_customer(),
        ]

    def _affected(self, payment_id) -> list:
        return [PaymentKeys.detail(payment_id), *self._collections(), PaymentKeys.stats()]

    def _patch_everywhere(self, cache: QueryCache, payment_id, changes: Dict) -> None:
        wanted = str(payment_id)

        def _patch_item(item):
            if str(item.get("id")) == wanted:
                item.update(changes)
            return item

        cache.update(PaymentKeys.detail(payment_id), lambda d: {**d, **changes} if isinstance(d, dict) else d)
        for prefix in self._collections():
            cache.update_matching(prefix, lambda v: transform_items(v, _patch_item))

    def _after_change(self, payment: Dict) -> None:
        if isinstance(payment, dict) and payment.get("id") is not None:
            self.cache.set(PaymentKeys.detail(payment["id"]), payment)
        for prefix in self._collections():
            self.cache.invalidate(prefix)
        self.cache.invalidate(PaymentKeys.stats())

    # =========================================================================
    # OPTIMISTIC MUTATIONS
    # =========================================================================

    def update(self, payment_id, data: Dict) -> Dict:
        def _apply(cache):
            detail = cache.get(PaymentKeys.detail(payment_id))
            changes = dict(data)
            if isinstance(detail, dict) and detail.get("status") in NOTES_ONLY_STATUSES:
                changes = {k: v for k, v in changes.items() if k == "notes"}
            if changes:
                self._patch_everywhere(cache, payment_id, changes)

        return self.mutation.run(
            lambda: self.api.update_payment(payment_id, data),
            fallback_message=MSG_UPDATE_FAILED,
            affected=self._affected(payment_id),
            lock_key=PaymentKeys.detail(payment_id),
            apply=_apply,
            on_success=self._after_change,
            success_message="Pago actualizado exitosamente",
        )

    def update_status(self, payment_id, status: str) -> Dict:
        return self.mutation.run(
            lambda: self.api.update_payment_status(payment_id, status),
            fallback_message=MSG_STATUS_FAILED,
            affected=self._affected(payment_id),
            lock_key=PaymentKeys.detail(payment_id),
            apply=lambda cache: self._patch_everywhere(cache, payment_id, {"status": status}),
            on_success=self._after_change,
            success_message="Estado del pago actualizado",
        )

    def delete(self, payment_id) -> None:
        wanted = str(payment_id)

        def _apply(cache):
            def _drop(item):
                return None if str(item.get("id")) == wanted else item

            for prefix in self._collections():
                cache.update_matching(prefix, lambda v: transform_items(v, _drop))
            cache.remove(PaymentKeys.detail(payment_id))

        def _success(_result):
            self.cache.remove(PaymentKeys.detail(payment_id))
            self.cache.invalidate(PaymentKeys.all)

        self.mutation.run(
            lambda: self.api.delete_payment(payment_id),
            fallback_message=MSG_DELETE_FAILED,
            affected=self._affected(payment_id),
            lock_key=PaymentKeys.detail(payment_id),
            apply=_apply,
            on_success=_success,
            success_message="Pago eliminado exitosamente",
        )

    # =========================================================================
    # SERVER-CONFIRMED MUTATIONS
    # =========================================================================

    def create(self, data: Dict) -> Dict:
        return self.mutation.run(
            lambda: self.api.create_payment(data),
            fallback_message=MSG_CREATE_FAILED,
            on_success=lambda _payment: self.cache.invalidate(PaymentKeys.all),
            success_message="Pago registrado exitosamente",
        )

    def refund(self, payment_id, amount: Optional[int] = None) -> Dict:
        def _success(_result):
            self.cache.invalidate(PaymentKeys.all)

        return self.mutation.run(
            lambda: self.api.refund_payment(payment_id, amount),
            fallback_message=MSG_REFUND_FAILED,
            lock_key=PaymentKeys.detail(payment_id),
            on_success=_success,
            success_message="Reembolso procesado exitosamente",
        )
