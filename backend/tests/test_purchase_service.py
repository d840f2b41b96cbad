"""
Purchase lifecycle tests.

Verifies:
- Completing a purchase adds stock and updates the item's purchase price
- Purchase numbers have their own fiscal-year counter
- Cancelling reverses the receipt, and is refused once the goods are sold
"""

import pytest

from gstbill.errors import InsufficientStock, InvalidStateTransition, ValidationError
from gstbill.models import DocumentStatus, Item, Purchase
from gstbill.services import invoice_service, purchase_service, stock_service
from gstbill.services.permission_service import PermissionDeniedError


def _item(db_session, item):
    return db_session.query(Item).filter_by(id=item.id).populate_existing().one()


def _payload(*lines, **header):
    payload = {
        "document_date": "2025-06-15",
        "supplier_name": "Havells Distributor",
        "supplier_invoice_ref": "HV-7781",
        "lines": list(lines),
    }
    payload.update(header)
    return payload


class TestSavePurchase:

    def test_completed_purchase_adds_stock(self, db_session, buyer, make_item):
        item = make_item(stock=5, purchase_price="700.00")

        purchase = purchase_service.save_purchase(
            buyer,
            _payload({"item_id": item.id, "quantity": 20, "unit_price": "650.00"}),
            "completed",
        )

        assert purchase.status == DocumentStatus.COMPLETED
        assert purchase.document_number == "PUR/2025-26/0001"
        assert purchase.supplier_invoice_ref == "HV-7781"
        refreshed = _item(db_session, item)
        assert refreshed.current_stock == 25
        assert refreshed.purchase_price_paise == 65000
        rows = stock_service.entries_for_reference(purchase.document_number)
        assert [(r.entry_type, r.quantity_change) for r in rows] == [("purchase", 20)]

    def test_draft_moves_no_stock(self, db_session, buyer, make_item):
        item = make_item(stock=5)
        purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 20}))
        assert _item(db_session, item).current_stock == 5

    def test_defaults_to_last_purchase_price(self, db_session, buyer, make_item):
        item = make_item(purchase_price="700.00")
        purchase = purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 2}))
        assert purchase.subtotal_paise == 140000
        assert purchase.total_tax_paise == 25200

    def test_counter_independent_of_invoices(self, db_session, buyer, biller, make_item):
        item = make_item(stock=10)
        invoice_service.save_invoice(biller, {"document_date": "2025-06-15", "lines": [{"item_id": item.id, "quantity": 1}]})
        purchase = purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 1}))
        assert purchase.document_number == "PUR/2025-26/0001"

    def test_numbered_draft_cannot_move_to_another_fiscal_year(self, db_session, buyer, make_item):
        item = make_item(stock=5)
        draft = purchase_service.save_purchase(
            buyer, _payload({"item_id": item.id, "quantity": 4}, document_date="2025-03-31")
        )

        with pytest.raises(ValidationError, match="2025-26"):
            purchase_service.save_purchase(
                buyer,
                _payload({"item_id": item.id, "quantity": 4}, document_date="2025-04-02"),
                "completed",
                purchase_id=draft.id,
            )

        purchase = purchase_service.get_purchase(draft.id)
        assert purchase.status == DocumentStatus.DRAFT
        assert purchase.fiscal_year == "2024-25"
        assert _item(db_session, item).current_stock == 5

    def test_supplier_required(self, db_session, buyer, make_item):
        item = make_item()
        with pytest.raises(ValidationError, match="supplier"):
            purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 1}, supplier_name=""))
        assert db_session.query(Purchase).count() == 0

    def test_supplier_snapshot(self, db_session, buyer, make_item, supplier):
        item = make_item()
        purchase = purchase_service.save_purchase(
            buyer,
            _payload({"item_id": item.id, "quantity": 1}, supplier_id=supplier.id),
        )
        assert purchase.supplier_name == "Havells Distributor"
        assert purchase.supplier_gstin == "27AAACH1234K1Z2"
        assert purchase.is_inter_state is False

    def test_billing_staff_cannot_purchase(self, db_session, biller, make_item):
        item = make_item()
        with pytest.raises(PermissionDeniedError):
            purchase_service.save_purchase(biller, _payload({"item_id": item.id, "quantity": 1}))


class TestCancelPurchase:

    def test_cancel_takes_goods_back_out(self, db_session, admin, buyer, make_item):
        item = make_item(stock=5)
        purchase = purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 20}), "completed")

        cancelled = purchase_service.cancel_purchase(admin, purchase.id, "Wrong supplier bill")

        assert cancelled.status == DocumentStatus.CANCELLED
        assert _item(db_session, item).current_stock == 5
        rows = stock_service.entries_for_reference(f"CANCEL-{purchase.document_number}")
        assert [(r.entry_type, r.quantity_change) for r in rows] == [("adjustment", -20)]
        assert stock_service.verify_ledger_chain(item.id) == []

    def test_cancel_refused_once_goods_are_sold(self, db_session, admin, buyer, biller, make_item):
        item = make_item()
        purchase = purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 10}), "completed")
        invoice_service.save_invoice(
            biller,
            {"document_date": "2025-06-16", "lines": [{"item_id": item.id, "quantity": 8}]},
            "completed",
        )

        with pytest.raises(InsufficientStock):
            purchase_service.cancel_purchase(admin, purchase.id)

        assert _item(db_session, item).current_stock == 2
        assert purchase_service.get_purchase(purchase.id).status == DocumentStatus.COMPLETED

    def test_double_cancel_rejected(self, db_session, admin, buyer, make_item):
        item = make_item()
        purchase = purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 3}))
        purchase_service.cancel_purchase(admin, purchase.id)
        with pytest.raises(InvalidStateTransition):
            purchase_service.cancel_purchase(admin, purchase.id)

    def test_list_by_supplier(self, db_session, buyer, make_item, supplier):
        item = make_item()
        mine = purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 1}, supplier_id=supplier.id))
        purchase_service.save_purchase(buyer, _payload({"item_id": item.id, "quantity": 1}))
        assert [p.id for p in purchase_service.list_purchases(supplier_id=supplier.id)] == [mine.id]
