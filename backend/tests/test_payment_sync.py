# Overview: Pytest coverage for cached payment reads and payment mutations.

import httpx
import pytest

from stockflow_client import ApiError, MutationError, PaymentKeys, PaymentSync, QueryCache, Toaster


def _payment(payment_id, **extra):
    data = {
        "id": payment_id,
        "payment_number": f"PAG-2024-{payment_id:04d}",
        "invoice_id": "INV-1",
        "customer_id": "C-1",
        "amount": 1000,
        "method": "CASH",
        "status": "PENDING",
        "notes": None,
    }
    data.update(extra)
    return data


class FakePaymentsApi:
    def __init__(self):
        self.fail = None
        self.on_call = None
        self.calls = []
        self.fetches = 0

    def _mutate(self, name, result):
        self.calls.append(name)
        if self.on_call is not None:
            self.on_call(name)
        if self.fail is not None:
            raise self.fail
        return result

    def get_payment(self, payment_id):
        self.fetches += 1
        return _payment(payment_id)

    def get_payment_stats(self):
        self.fetches += 1
        return {"total_payments": 1}

    def update_payment(self, payment_id, data):
        return self._mutate("update_payment", _payment(payment_id, **{**data, "notes": "server"}))

    def update_payment_status(self, payment_id, status):
        return self._mutate("update_payment_status", _payment(payment_id, status=status))

    def delete_payment(self, payment_id):
        return self._mutate("delete_payment", {"success": True})

    def create_payment(self, data):
        return self._mutate("create_payment", {"id": 99, **data})

    def refund_payment(self, payment_id, amount=None):
        return self._mutate("refund_payment", _payment(100, amount=-(amount or 1000), status="REFUNDED"))


@pytest.fixture
def api():
    return FakePaymentsApi()


@pytest.fixture
def sync(api):
    return PaymentSync(api, cache=QueryCache(), toaster=Toaster())


def _seed(sync, payment):
    sync.cache.set(PaymentKeys.detail(payment["id"]), payment)
    sync.cache.set(PaymentKeys.list({"page": 1}), {"data": [payment, _payment(2)], "meta": {"total": 2}})
    sync.cache.set(PaymentKeys.recent(5), [payment])
    sync.cache.set(PaymentKeys.stats(), {"total_payments": 2})


class TestQueries:
    def test_detail_and_stats_are_cached(self, api, sync):
        sync.get(1)
        sync.get(1)
        sync.stats()
        sync.stats()

        assert api.fetches == 2


class TestUpdateStatus:
    def test_optimistic_status_everywhere(self, api, sync):
        _seed(sync, _payment(1))
        seen = {}

        def _inspect(_name):
            seen["detail"] = sync.cache.get(PaymentKeys.detail(1))["status"]
            seen["list"] = sync.cache.get(PaymentKeys.list({"page": 1}))["data"][0]["status"]
            seen["other"] = sync.cache.get(PaymentKeys.list({"page": 1}))["data"][1]["status"]
            seen["recent"] = sync.cache.get(PaymentKeys.recent(5))[0]["status"]

        api.on_call = _inspect
        sync.update_status(1, "COMPLETED")

        assert seen == {"detail": "COMPLETED", "list": "COMPLETED", "other": "PENDING", "recent": "COMPLETED"}
        assert sync.toaster.last.message == "Estado del pago actualizado"
        assert sync.cache.is_stale(PaymentKeys.stats())
        assert not sync.cache.is_stale(PaymentKeys.detail(1))

    def test_rejected_transition_rolls_back(self, api, sync):
        _seed(sync, _payment(1, status="COMPLETED"))
        before = dict(sync.cache.items(PaymentKeys.all))
        api.fail = ApiError("Un pago completado solo puede ser reembolsado o cancelado", status_code=409)

        with pytest.raises(MutationError) as exc_info:
            sync.update_status(1, "PENDING")

        assert dict(sync.cache.items(PaymentKeys.all)) == before
        assert exc_info.value.message == "Un pago completado solo puede ser reembolsado o cancelado"
        assert sync.toaster.last.level == "error"

    def test_network_failure_uses_fallback(self, api, sync):
        _seed(sync, _payment(1))
        api.fail = httpx.ConnectError("refused")

        with pytest.raises(MutationError):
            sync.update_status(1, "FAILED")

        assert sync.toaster.last.message == "Error al actualizar el estado del pago"
        assert sync.cache.get(PaymentKeys.detail(1))["status"] == "PENDING"


class TestUpdate:
    def test_restricted_status_only_patches_notes(self, api, sync):
        _seed(sync, _payment(1, status="COMPLETED"))
        seen = {}

        def _inspect(_name):
            detail = sync.cache.get(PaymentKeys.detail(1))
            seen.update(amount=detail["amount"], notes=detail["notes"])

        api.on_call = _inspect
        sync.update(1, {"amount": 5, "notes": "conciliado"})

        assert seen == {"amount": 1000, "notes": "conciliado"}

    def test_pending_patches_all_fields(self, api, sync):
        _seed(sync, _payment(1))
        seen = {}
        api.on_call = lambda _n: seen.update(amount=sync.cache.get(PaymentKeys.detail(1))["amount"])

        result = sync.update(1, {"amount": 5})

        assert seen == {"amount": 5}
        assert result["notes"] == "server"
        assert sync.cache.get(PaymentKeys.detail(1))["notes"] == "server"
        assert sync.toaster.last.message == "Pago actualizado exitosamente"

    def test_failure_restores_and_uses_fallback(self, api, sync):
        _seed(sync, _payment(1))
        before = dict(sync.cache.items(PaymentKeys.all))
        api.fail = ApiError("   ", status_code=500)

        with pytest.raises(MutationError, match="Error al actualizar el pago"):
            sync.update(1, {"amount": 5})

        assert dict(sync.cache.items(PaymentKeys.all)) == before


class TestDelete:
    def test_optimistic_removal_and_rollback(self, api, sync):
        _seed(sync, _payment(1))
        before = dict(sync.cache.items(PaymentKeys.all))
        seen = {}

        def _inspect(_name):
            seen["ids"] = [p["id"] for p in sync.cache.get(PaymentKeys.list({"page": 1}))["data"]]
            seen["detail"] = sync.cache.has(PaymentKeys.detail(1))

        api.on_call = _inspect
        api.fail = ApiError("Solo se pueden eliminar pagos pendientes", status_code=409)

        with pytest.raises(MutationError):
            sync.delete(1)

        assert seen == {"ids": [2], "detail": False}
        assert dict(sync.cache.items(PaymentKeys.all)) == before

    def test_success(self, api, sync):
        _seed(sync, _payment(1))

        sync.delete(1)

        assert not sync.cache.has(PaymentKeys.detail(1))
        assert sync.cache.is_stale(PaymentKeys.list({"page": 1}))
        assert sync.toaster.last.message == "Pago eliminado exitosamente"


class TestServerConfirmed:
    def test_create_invalidates_everything(self, api, sync):
        _seed(sync, _payment(1))

        created = sync.create({"invoice_id": "INV-2", "amount": 10})

        assert created["id"] == 99
        assert all(sync.cache.is_stale(key) for key in sync.cache.keys(PaymentKeys.all))
        assert sync.toaster.last.message == "Pago registrado exitosamente"

    def test_refund_does_not_touch_cache_before_answer(self, api, sync):
        _seed(sync, _payment(1, status="COMPLETED"))
        seen = []
        api.on_call = lambda _n: seen.append(sync.cache.get(PaymentKeys.detail(1))["status"])

        sync.refund(1, 500)

        assert seen == ["COMPLETED"]
        assert sync.cache.is_stale(PaymentKeys.detail(1))
        assert sync.toaster.last.message == "Reembolso procesado exitosamente"

    def test_refund_failure_message(self, api, sync):
        api.fail = ApiError("", status_code=500)

        with pytest.raises(MutationError, match="Error al procesar el reembolso"):
            sync.refund(1)

        assert sync.toaster.last.level == "error"
