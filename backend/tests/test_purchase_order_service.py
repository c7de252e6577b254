"""
Tests for the purchase order lifecycle and its inventory/accounting effects.
"""

import re
from decimal import Decimal

import pytest

from pharmapos.models import InventoryBatch, Product, PurchaseOrder, PurchaseOrderLine
from pharmapos.services import inventory_service, purchase_order_service
from pharmapos.time_utils import period_key
from pharmapos.validation import AuthorizationError, ConflictError, ExhaustedError, NotFoundError

from conftest import line, order_payload


USER = "user-42"


def _batches_for(order):
    return (
        InventoryBatch.query.filter_by(source_type="purchase_order", source_id=order.id)
        .order_by(InventoryBatch.id)
        .all()
    )


@pytest.fixture
def catalog(product_a, product_b):
    return product_a, product_b


class TestCreate:
    def test_total_is_sum_of_lines(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(
            order_payload(total_amount="999.99"), acting_user_id=USER
        )

        assert order.total_amount == Decimal("160.00")
        assert order.status == "pending"
        assert order.poid == "PO-1001"
        assert order.order_number == "PO-1001"
        assert order.created_by_user_id == USER
        assert [l.position for l in order.lines] == [0, 1]
        assert _batches_for(order) == []

    def test_blank_poid_generates_date_number(self, db_session, catalog):
        first = purchase_order_service.create_purchase_order(order_payload(poid=""))
        second = purchase_order_service.create_purchase_order(order_payload(poid=None))

        for order in (first, second):
            assert re.fullmatch(r"\d{11}", order.poid)
            assert order.poid.startswith(period_key())
            assert order.order_number == order.poid
        assert first.order_number != second.order_number

    def test_generated_number_skips_hand_typed_poid(self, db_session, catalog):
        taken = f"{period_key()}001"
        purchase_order_service.create_purchase_order(order_payload(poid=taken))

        order = purchase_order_service.create_purchase_order(order_payload(poid=""))
        assert order.poid == f"{period_key()}002"

    def test_order_number_taken_concurrently_is_reallocated(self, db_session, catalog, monkeypatch):
        taken = purchase_order_service.create_purchase_order(order_payload(poid="PO-1")).order_number
        real_allocate = purchase_order_service.allocate
        calls = []

        # First allocation returns a number another writer already stored
        def _racing_allocate(kind, requested_base=None, **kwargs):
            calls.append(requested_base)
            if len(calls) == 1:
                return taken
            return real_allocate(kind, requested_base, **kwargs)

        monkeypatch.setattr(purchase_order_service, "allocate", _racing_allocate)

        order = purchase_order_service.create_purchase_order(order_payload(poid=""))

        assert len(calls) == 2
        assert order.order_number == order.poid
        assert order.order_number.startswith(period_key())
        assert PurchaseOrder.query.count() == 2

    def test_order_number_collisions_exhaust(self, app, db_session, catalog, monkeypatch):
        monkeypatch.setitem(app.config, "ORDER_NUMBER_INSERT_RETRIES", 2)
        taken = purchase_order_service.create_purchase_order(order_payload(poid="PO-1")).order_number
        calls = []

        def _always_taken(kind, requested_base=None, **kwargs):
            calls.append(requested_base)
            return taken

        monkeypatch.setattr(purchase_order_service, "allocate", _always_taken)

        with pytest.raises(ExhaustedError):
            purchase_order_service.create_purchase_order(order_payload(poid=""))

        assert len(calls) == 3
        assert PurchaseOrder.query.count() == 1

    def test_duplicate_poid_conflicts(self, db_session, catalog):
        purchase_order_service.create_purchase_order(order_payload())
        with pytest.raises(ConflictError):
            purchase_order_service.create_purchase_order(order_payload())

    def test_completed_without_user_writes_nothing(self, db_session, catalog):
        with pytest.raises(AuthorizationError):
            purchase_order_service.create_purchase_order(order_payload(status="completed"))
        db_session.rollback()

        assert PurchaseOrder.query.count() == 0
        assert InventoryBatch.query.count() == 0

    def test_completed_on_create_posts_batches(self, db_session, catalog, accounting):
        order = purchase_order_service.create_purchase_order(
            order_payload(status="completed"), acting_user_id=USER
        )
        batches = _batches_for(order)

        assert len(batches) == 2
        assert sum(b.quantity for b in batches) == sum(l.quantity for l in order.lines)
        assert sum(b.total_amount for b in batches) == order.total_amount
        assert {b.source_number for b in batches} == {order.order_number}
        assert {b.created_by_user_id for b in batches} == {USER}
        assert order.completed_by_user_id == USER
        assert order.completed_at is not None
        assert order.transaction_group_id == "TG-0001"
        assert accounting.completed == [(order.id, USER)]

    def test_unresolved_lines_post_no_batch(self, db_session, product_a):
        items = [line("P001"), line("NOPE", "Unlisted item", 3, "9.00")]
        order = purchase_order_service.create_purchase_order(
            order_payload(items=items, status="completed"), acting_user_id=USER
        )

        batches = _batches_for(order)
        assert len(batches) == 1
        assert batches[0].product_id == product_a.id
        assert order.lines[1].product_id is None

    def test_completion_refreshes_last_purchase_price(self, db_session, catalog):
        purchase_order_service.create_purchase_order(
            order_payload(status="completed"), acting_user_id=USER
        )
        assert db_session.get(Product, catalog[1].id).last_purchase_price == Decimal("12.0000")


class TestStatusTransitions:
    def test_complete_then_unlock(self, db_session, catalog, accounting):
        order = purchase_order_service.create_purchase_order(order_payload())

        order = purchase_order_service.update_purchase_order(
            order.id, {"status": "completed"}, acting_user_id=USER
        )
        assert len(_batches_for(order)) == 2
        assert order.transaction_group_id == "TG-0001"

        order = purchase_order_service.update_purchase_order(order.id, {"status": "pending"})
        assert _batches_for(order) == []
        assert order.transaction_group_id is None
        assert order.completed_at is None
        assert accounting.unlocked == [order.id]

    def test_repeated_unlock_cycles_leave_no_batches(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(order_payload())

        for _ in range(2):
            purchase_order_service.update_purchase_order(order.id, {"status": "completed"}, acting_user_id=USER)
            assert len(_batches_for(order)) == 2
            purchase_order_service.update_purchase_order(order.id, {"status": "pending"})
            assert _batches_for(order) == []

        assert inventory_service.get_quantity_on_hand(catalog[0].id) == 0

    def test_cancel_from_completed_removes_batches(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(
            order_payload(status="completed"), acting_user_id=USER
        )
        order = purchase_order_service.update_purchase_order(order.id, {"status": "cancelled"})

        assert order.status == "cancelled"
        assert _batches_for(order) == []

    def test_completing_requires_user_before_ledger_writes(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(order_payload())

        with pytest.raises(AuthorizationError):
            purchase_order_service.update_purchase_order(order.id, {"status": "completed"})
        db_session.rollback()

        assert db_session.get(PurchaseOrder, order.id).status == "pending"
        assert InventoryBatch.query.count() == 0

    def test_editing_completed_order_does_not_repost(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(
            order_payload(status="completed"), acting_user_id=USER
        )

        order = purchase_order_service.update_purchase_order(
            order.id, {"items": [line("P001", quantity=50, total_cost="500.00")]}, acting_user_id=USER
        )

        assert order.total_amount == Decimal("500.00")
        assert len(_batches_for(order)) == 2

    def test_cancelled_to_pending_has_no_effects(self, db_session, catalog, accounting):
        order = purchase_order_service.create_purchase_order(order_payload(status="cancelled"))
        purchase_order_service.update_purchase_order(order.id, {"status": "pending"})

        assert InventoryBatch.query.count() == 0
        assert accounting.completed == []
        assert accounting.unlocked == []


class TestAccountingFailures:
    def test_completion_failure_keeps_batches(self, db_session, catalog, accounting):
        accounting.fail_on_complete = True
        order = purchase_order_service.create_purchase_order(order_payload())

        order = purchase_order_service.update_purchase_order(
            order.id, {"status": "completed"}, acting_user_id=USER
        )

        assert order.status == "completed"
        assert len(_batches_for(order)) == 2
        assert order.transaction_group_id is None

    def test_reversal_failure_keeps_group_id(self, db_session, catalog, accounting):
        order = purchase_order_service.create_purchase_order(
            order_payload(status="completed"), acting_user_id=USER
        )
        accounting.fail_on_unlock = True

        order = purchase_order_service.update_purchase_order(order.id, {"status": "pending"})

        assert order.status == "pending"
        assert _batches_for(order) == []
        assert order.transaction_group_id == "TG-0001"

    def test_ledger_delete_failure_rolls_back_unlock(self, db_session, catalog, monkeypatch):
        order = purchase_order_service.create_purchase_order(
            order_payload(status="completed"), acting_user_id=USER
        )
        order_id = order.id

        def _fail(source_id, source_type="purchase_order"):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(purchase_order_service, "delete_by_source", _fail)

        with pytest.raises(RuntimeError):
            purchase_order_service.update_purchase_order(order_id, {"status": "pending"})
        db_session.rollback()

        assert db_session.get(PurchaseOrder, order_id).status == "completed"
        assert InventoryBatch.query.filter_by(source_id=order_id).count() == 2


class TestUpdate:
    def test_stale_version_conflicts(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(order_payload())
        purchase_order_service.update_purchase_order(order.id, {"notes": "first edit"})

        with pytest.raises(ConflictError):
            purchase_order_service.update_purchase_order(order.id, {"notes": "late", "version_id": 1})

    def test_matching_version_accepted(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(order_payload())
        order = purchase_order_service.update_purchase_order(
            order.id, {"notes": "ok", "version_id": order.version_id}
        )
        assert order.notes == "ok"

    def test_rename_reallocates_order_number(self, db_session, catalog):
        db_session.add(PurchaseOrder(poid="LEGACY-7", order_number="PO-2002"))
        db_session.commit()
        order = purchase_order_service.create_purchase_order(order_payload())

        order = purchase_order_service.update_purchase_order(order.id, {"poid": "PO-2002"})

        assert order.poid == "PO-2002"
        assert order.order_number == "PO-2002-1"

    def test_rename_blocked_while_completed(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(
            order_payload(poid="PO-1", status="completed"), acting_user_id=USER
        )

        with pytest.raises(ConflictError):
            purchase_order_service.update_purchase_order(order.id, {"poid": "PO-9"}, acting_user_id=USER)
        db_session.rollback()

        order = db_session.get(PurchaseOrder, order.id)
        assert order.poid == "PO-1"
        assert {b.source_number for b in _batches_for(order)} == {"PO-1"}

    def test_rename_allowed_when_unlocking(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(
            order_payload(poid="PO-1", status="completed"), acting_user_id=USER
        )

        order = purchase_order_service.update_purchase_order(
            order.id, {"poid": "PO-9", "status": "pending"}, acting_user_id=USER
        )

        assert order.order_number == "PO-9"
        assert _batches_for(order) == []

    def test_rename_to_existing_poid_conflicts(self, db_session, catalog):
        purchase_order_service.create_purchase_order(order_payload(poid="PO-1"))
        order = purchase_order_service.create_purchase_order(order_payload(poid="PO-2"))

        with pytest.raises(ConflictError):
            purchase_order_service.update_purchase_order(order.id, {"poid": "PO-1"})

    def test_items_replace_lines_and_total(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(order_payload())
        order = purchase_order_service.update_purchase_order(
            order.id, {"items": [line("P002", quantity=2, total_cost="24.50")]}
        )

        assert [l.code for l in order.lines] == ["P002"]
        assert order.total_amount == Decimal("24.50")
        assert PurchaseOrderLine.query.count() == 1

    def test_missing_order(self, db_session):
        with pytest.raises(NotFoundError):
            purchase_order_service.update_purchase_order(12345, {"notes": "x"})


class TestDelete:
    def test_delete_pending_removes_lines(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(order_payload())
        purchase_order_service.delete_purchase_order(order.id)

        assert PurchaseOrder.query.count() == 0
        assert PurchaseOrderLine.query.count() == 0

    def test_delete_completed_conflicts(self, db_session, catalog):
        order = purchase_order_service.create_purchase_order(
            order_payload(status="completed"), acting_user_id=USER
        )
        with pytest.raises(ConflictError):
            purchase_order_service.delete_purchase_order(order.id)

        assert len(_batches_for(order)) == 2

    def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            purchase_order_service.delete_purchase_order(777)


class TestQueries:
    def test_list_sorted_by_poid_desc_with_filters(self, db_session, catalog, supplier):
        purchase_order_service.create_purchase_order(order_payload(poid="PO-A"))
        purchase_order_service.create_purchase_order(order_payload(poid="PO-C", status="cancelled"))
        purchase_order_service.create_purchase_order(order_payload(poid="PO-B"))

        orders, total = purchase_order_service.list_purchase_orders()
        assert [o.poid for o in orders] == ["PO-C", "PO-B", "PO-A"]
        assert total == 3

        orders, total = purchase_order_service.list_purchase_orders(status="pending", limit=1)
        assert total == 2
        assert [o.poid for o in orders] == ["PO-B"]

        orders, _ = purchase_order_service.list_purchase_orders(supplier_id=supplier.id)
        assert len(orders) == 3

    def test_list_by_product_only_completed(self, db_session, catalog):
        purchase_order_service.create_purchase_order(
            order_payload(poid="PO-OLD", bill_date="2024-01-01", status="completed"), acting_user_id=USER
        )
        purchase_order_service.create_purchase_order(
            order_payload(poid="PO-NEW", bill_date="2024-03-01", status="completed"), acting_user_id=USER
        )
        purchase_order_service.create_purchase_order(order_payload(poid="PO-OPEN"))
        purchase_order_service.create_purchase_order(
            order_payload(poid="PO-OTHER", items=[line("P002")], status="completed"), acting_user_id=USER
        )

        orders = purchase_order_service.list_by_product(catalog[0].id)
        assert [o.poid for o in orders] == ["PO-NEW", "PO-OLD"]

    def test_list_by_supplier_and_recent(self, db_session, catalog, supplier):
        purchase_order_service.create_purchase_order(order_payload(poid="PO-1"))
        purchase_order_service.create_purchase_order(order_payload(poid="PO-2", supplier_name="Other"))

        assert [o.poid for o in purchase_order_service.list_by_supplier(supplier.id)] == ["PO-1"]
        assert [o.poid for o in purchase_order_service.list_recent(1)] == ["PO-2"]
