# Overview: Pytest coverage for purchase orders and receiving vouchers.

from datetime import timedelta
from decimal import Decimal

import pytest

from posledger.models import AccountsPayable, InventoryBatch, StockMovement
from posledger.services import inventory_service, purchase_order_service, receiving_service
from posledger.services.errors import ConflictError, NotFoundError, UnknownUOMError, ValidationError

from .conftest import TODAY


@pytest.fixture
def purchase_order(db_session, branch, warehouse, supplier, product):
    return purchase_order_service.create_purchase_order(
        supplier_id=supplier.id,
        branch_id=branch.id,
        warehouse_id=warehouse.id,
        po_number="PO-20250101-0001",
        items=[
            {"product_id": product.id, "quantity": 2, "uom": "Case", "unit_price": Decimal("480.00")},
            {"product_id": product.id, "quantity": 10, "uom": "Bottle", "unit_price": Decimal("20.00")},
        ],
    )


def _lines(po):
    cases = next(i for i in po.items if i.uom == "Case")
    bottles = next(i for i in po.items if i.uom == "Bottle")
    return cases, bottles


class TestPurchaseOrders:

    def test_created_ordered_and_pending(self, purchase_order):
        assert purchase_order.status == "ordered"
        assert purchase_order.receiving_status == "pending"
        assert len(purchase_order.items) == 2

    def test_unknown_uom(self, db_session, branch, warehouse, supplier, product):
        with pytest.raises(UnknownUOMError):
            purchase_order_service.create_purchase_order(
                supplier_id=supplier.id,
                branch_id=branch.id,
                warehouse_id=warehouse.id,
                items=[{"product_id": product.id, "quantity": 1, "uom": "Pallet", "unit_price": 1}],
            )

    def test_duplicate_po_number(self, db_session, purchase_order, branch, warehouse, supplier, product):
        with pytest.raises(ConflictError):
            purchase_order_service.create_purchase_order(
                supplier_id=supplier.id,
                branch_id=branch.id,
                warehouse_id=warehouse.id,
                po_number=purchase_order.po_number,
                items=[{"product_id": product.id, "quantity": 1, "uom": "Bottle", "unit_price": 1}],
            )

    def test_cancel_before_receiving(self, db_session, purchase_order):
        po = purchase_order_service.cancel_purchase_order(purchase_order.id)
        assert po.status == "cancelled"


class TestReceiving:

    def test_partial_delivery(self, db_session, purchase_order, product, warehouse):
        cases, bottles = _lines(purchase_order)

        voucher = receiving_service.receive_purchase_order(
            purchase_order.id,
            "Juan Receiver",
            [
                {"po_item_id": cases.id, "received_quantity": 1, "variance_reason": "Short shipment"},
                {"po_item_id": bottles.id, "received_quantity": 10},
            ],
            today=TODAY,
        )

        assert voucher.rv_number == "RV-20250101-0001"
        assert voucher.total_ordered_amount == Decimal("1160.00")
        assert voucher.total_received_amount == Decimal("680.00")
        assert voucher.variance_amount == Decimal("-480.00")

        case_line = next(i for i in voucher.items if i.uom == "Case")
        assert case_line.variance_quantity == Decimal("-1")
        assert case_line.variance_percentage == Decimal("-50.00")
        assert case_line.variance_reason == "Short shipment"

        # 1 case = 24 bottles, plus 10 bottles
        assert inventory_service.get_total_stock(product.id, warehouse.id) == 34
        case_batch = (
            db_session.query(InventoryBatch)
            .filter(InventoryBatch.quantity == 24)
            .one()
        )
        assert case_batch.unit_cost == 20
        assert case_batch.expiry_date == TODAY + timedelta(days=180)

        po = purchase_order_service.get_purchase_order(purchase_order.id)
        assert po.receiving_status == "partially_received"
        assert po.status == "ordered"
        assert db_session.query(AccountsPayable).count() == 0

        movements = db_session.query(StockMovement).filter_by(reference_type="RV").all()
        assert {m.reference_id for m in movements} == {voucher.rv_number}

    def test_full_delivery_closes_po_and_opens_payable(self, db_session, purchase_order, supplier):
        cases, bottles = _lines(purchase_order)
        receiving_service.receive_purchase_order(
            purchase_order.id, "Juan Receiver",
            [{"po_item_id": cases.id, "received_quantity": 1}, {"po_item_id": bottles.id, "received_quantity": 10}],
            today=TODAY,
        )
        second = receiving_service.receive_purchase_order(
            purchase_order.id, "Juan Receiver",
            [{"po_item_id": cases.id, "received_quantity": 1}],
            today=TODAY,
        )

        assert second.rv_number == "RV-20250101-0002"
        assert second.items[0].ordered_quantity == 1
        assert second.items[0].variance_quantity == 0

        po = purchase_order_service.get_purchase_order(purchase_order.id)
        assert po.receiving_status == "fully_received"
        assert po.status == "received"
        assert po.actual_delivery_date == TODAY

        ap = db_session.query(AccountsPayable).filter_by(purchase_order_id=po.id).one()
        assert ap.total_amount == Decimal("1160.00")
        assert ap.supplier_id == supplier.id
        assert ap.due_date == TODAY + timedelta(days=30)

    def test_over_delivery_counts_as_full(self, db_session, purchase_order):
        cases, bottles = _lines(purchase_order)
        voucher = receiving_service.receive_purchase_order(
            purchase_order.id, "Juan Receiver",
            [{"po_item_id": cases.id, "received_quantity": 3}, {"po_item_id": bottles.id, "received_quantity": 10}],
            today=TODAY,
        )
        case_line = next(i for i in voucher.items if i.uom == "Case")
        assert case_line.variance_percentage == Decimal("50.00")
        assert purchase_order_service.get_purchase_order(purchase_order.id).receiving_status == "fully_received"

    def test_nothing_received(self, db_session, purchase_order):
        cases, _ = _lines(purchase_order)
        with pytest.raises(ValidationError):
            receiving_service.receive_purchase_order(
                purchase_order.id, "Juan Receiver", [{"po_item_id": cases.id, "received_quantity": 0}], today=TODAY,
            )

    def test_receiver_required(self, db_session, purchase_order):
        cases, _ = _lines(purchase_order)
        with pytest.raises(ValidationError):
            receiving_service.receive_purchase_order(
                purchase_order.id, " ", [{"po_item_id": cases.id, "received_quantity": 1}], today=TODAY,
            )

    def test_cancelled_po_cannot_be_received(self, db_session, purchase_order):
        cases, _ = _lines(purchase_order)
        purchase_order_service.cancel_purchase_order(purchase_order.id)
        with pytest.raises(ValidationError):
            receiving_service.receive_purchase_order(
                purchase_order.id, "Juan Receiver", [{"po_item_id": cases.id, "received_quantity": 1}], today=TODAY,
            )

    def test_foreign_line_rejected(self, db_session, purchase_order, product, warehouse):
        cases, bottles = _lines(purchase_order)
        with pytest.raises(NotFoundError):
            receiving_service.receive_purchase_order(
                purchase_order.id, "Juan Receiver",
                [{"po_item_id": cases.id, "received_quantity": 1}, {"po_item_id": bottles.id + 100, "received_quantity": 1}],
                today=TODAY,
            )
        assert inventory_service.get_total_stock(product.id, warehouse.id) == 0

    def test_repeated_line_rejected(self, db_session, purchase_order, product, warehouse):
        cases, _ = _lines(purchase_order)
        with pytest.raises(ValidationError):
            receiving_service.receive_purchase_order(
                purchase_order.id, "Juan Receiver",
                [{"po_item_id": cases.id, "received_quantity": 1}, {"po_item_id": cases.id, "received_quantity": 2}],
                today=TODAY,
            )
        assert inventory_service.get_total_stock(product.id, warehouse.id) == 0

    def test_received_po_cannot_be_cancelled(self, db_session, purchase_order):
        cases, _ = _lines(purchase_order)
        receiving_service.receive_purchase_order(
            purchase_order.id, "Juan Receiver", [{"po_item_id": cases.id, "received_quantity": 1}], today=TODAY,
        )
        with pytest.raises(ConflictError):
            purchase_order_service.cancel_purchase_order(purchase_order.id)


def test_variance_report(db_session, purchase_order):
    cases, bottles = _lines(purchase_order)
    receiving_service.receive_purchase_order(
        purchase_order.id, "Juan Receiver",
        [{"po_item_id": cases.id, "received_quantity": 1}, {"po_item_id": bottles.id, "received_quantity": 12}],
        today=TODAY,
    )

    report = receiving_service.get_variance_report(purchase_order.id)
    lines = {line["uom"]: line for line in report["lines"]}

    assert report["receiving_status"] == "partially_received"
    assert lines["Case"]["variance_quantity"] == Decimal("-1")
    assert lines["Bottle"]["variance_percentage"] == Decimal("20.00")


def test_get_receiving_voucher(db_session, purchase_order):
    cases, _ = _lines(purchase_order)
    voucher = receiving_service.receive_purchase_order(
        purchase_order.id, "Juan Receiver", [{"po_item_id": cases.id, "received_quantity": 2}],
        delivery_notes="Left at back door", today=TODAY,
    )

    loaded = receiving_service.get_receiving_voucher(voucher.id)
    assert loaded.delivery_notes == "Left at back door"
    assert loaded.purchase_order.po_number == purchase_order.po_number

    with pytest.raises(NotFoundError):
        receiving_service.get_receiving_voucher(voucher.id + 1000)
