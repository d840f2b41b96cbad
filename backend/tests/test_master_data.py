"""
Item, party and report service tests.

Verifies:
- Item payloads go through the writable-field allowlist
- Manual stock operations are permission checked and audited
- Party GSTINs are validated and set the state code
- Period reports only count completed documents
"""

from datetime import date
from decimal import Decimal

import pytest

from gstbill.errors import ConflictError, InsufficientStock, ValidationError
from gstbill.models import AuditLogEntry
from gstbill.services import invoice_service, item_service, party_service, purchase_service, report_service
from gstbill.services.permission_service import PermissionDeniedError
from gstbill.validation import parse_int, parse_money, sanitize_input


class TestItems:

    def test_create_with_opening_stock(self, db_session, admin):
        item = item_service.create_item(admin, {
            "sku": "rccb-40",
            "name": "RCCB 40A",
            "selling_price": "2450.50",
            "gst_percent": "18",
            "opening_stock": 12,
        })
        assert item.sku == "RCCB-40"
        assert item.selling_price_paise == 245050
        assert item.current_stock == 12
        assert item.gst_percent == Decimal("18")

    def test_invalid_gst_slab(self, db_session, admin):
        with pytest.raises(ValidationError):
            item_service.create_item(admin, {"sku": "A", "name": "A", "gst_percent": 15})

    def test_missing_required_fields(self, db_session, admin):
        with pytest.raises(ValidationError, match="Missing required fields: sku"):
            item_service.create_item(admin, {"name": "No SKU"})

    def test_update_rejects_sku_clash(self, db_session, admin, make_item):
        make_item(sku="TAKEN")
        other = make_item(sku="FREE")
        with pytest.raises(ConflictError):
            item_service.update_item(admin, other.id, {"sku": "taken"})

    def test_adjust_stock_is_audited(self, db_session, admin, make_item):
        item = make_item(stock=10)
        item = item_service.adjust_stock(admin, item.id, -2, "Broken in store")
        assert item.current_stock == 8
        entry = db_session.query(AuditLogEntry).filter_by(action="stock.adjusted").one()
        assert entry.details == "Broken in store"

    def test_adjust_below_zero_refused(self, db_session, admin, make_item):
        item = make_item(stock=1)
        with pytest.raises(InsufficientStock):
            item_service.adjust_stock(admin, item.id, -2, "Count")

    def test_billing_staff_cannot_adjust(self, db_session, biller, make_item):
        item = make_item(stock=10)
        with pytest.raises(PermissionDeniedError):
            item_service.adjust_stock(biller, item.id, -1, "Count")

    def test_list_search_and_low_stock(self, db_session, make_item):
        make_item("Copper Wire 2.5mm", stock=100)
        fuse = make_item("Fuse 6A", stock=0)
        assert [i.name for i in item_service.list_items(search="wire")] == ["Copper Wire 2.5mm"]
        assert [i.id for i in item_service.list_items(low_stock_only=True)] == [fuse.id]


class TestParties:

    def test_gstin_sets_state_code(self, db_session, biller):
        customer = party_service.create_party(biller, "customer", {
            "name": "Sharma Electricals",
            "gstin": "29abcde1234f1z5",
            "phone": "98765 43210",
        })
        assert customer.gstin == "29ABCDE1234F1Z5"
        assert customer.state_code == "29"
        assert customer.phone == "9876543210"

    @pytest.mark.parametrize("field,value", [
        ("gstin", "NOT-A-GSTIN"),
        ("phone", "12345"),
        ("email", "nobody"),
        ("state_code", "ABC"),
    ])
    def test_invalid_fields(self, db_session, biller, field, value):
        with pytest.raises(ValidationError):
            party_service.create_party(biller, "customer", {"name": "X", field: value})

    def test_markup_stripped_from_name(self, db_session, biller):
        customer = party_service.create_party(biller, "customer", {"name": "<b>Bold</b> Traders"})
        assert customer.name == "Bold Traders"

    def test_supplier_needs_supplier_permission(self, db_session, biller, buyer):
        with pytest.raises(PermissionDeniedError):
            party_service.create_party(biller, "supplier", {"name": "Polycab"})
        supplier = party_service.create_party(buyer, "supplier", {"name": "Polycab"})
        assert party_service.list_parties("supplier")[0].id == supplier.id

    def test_update(self, db_session, biller):
        customer = party_service.create_party(biller, "customer", {"name": "Old Name"})
        party_service.update_party(biller, "customer", customer.id, {"name": "New Name"})
        assert party_service.get_party("customer", customer.id).name == "New Name"


class TestReports:

    def test_tax_totals_for_period(self, db_session, biller, buyer, admin, make_item):
        item = make_item(stock=50)
        lines = [{"item_id": item.id, "quantity": 1}]
        invoice_service.save_invoice(biller, {"document_date": "2025-06-01", "lines": lines}, "completed")
        cancelled = invoice_service.save_invoice(biller, {"document_date": "2025-06-02", "lines": lines}, "completed")
        invoice_service.cancel_invoice(admin, cancelled.id)
        invoice_service.save_invoice(biller, {"document_date": "2025-07-01", "lines": lines}, "completed")
        purchase_service.save_purchase(
            buyer,
            {"document_date": "2025-06-05", "supplier_name": "Polycab", "lines": lines},
            "completed",
        )

        june = {"from_date": date(2025, 6, 1), "to_date": date(2025, 6, 30)}
        output = report_service.tax_totals_for_period("invoice", **june)
        assert output["document_count"] == 1
        assert output["taxable_value"] == "1000.00"
        assert output["total_tax"] == "180.00"

        purchases = report_service.tax_totals_for_period("purchase", **june)
        assert purchases["taxable_value"] == "700.00"

    def test_hsn_csv(self, db_session, biller, make_item):
        item = make_item(stock=5, hsn_code="8544")
        invoice_service.save_invoice(
            biller,
            {"document_date": "2025-06-01", "lines": [{"item_id": item.id, "quantity": 2}]},
            "completed",
        )
        csv_text = report_service.hsn_summary_csv(report_service.hsn_summary_for_period("invoice"))
        header, row = csv_text.strip().splitlines()
        assert header.startswith("hsn_code,description,unit,quantity")
        assert row.startswith("8544,MCB 32A,pcs,2,2000.00,180.00,180.00,0.00,360.00")

    def test_stock_valuation(self, db_session, make_item):
        make_item(stock=10, purchase_price="700.00")
        make_item("Fuse 6A", stock=3, purchase_price="250.50")
        make_item("Old Switch", stock=0, purchase_price="90.00", is_active=False)

        report = report_service.stock_valuation()

        assert [(r["name"], r["value"]) for r in report["items"]] == [
            ("Fuse 6A", "751.50"),
            ("MCB 32A", "7000.00"),
        ]
        assert report["total_quantity"] == 13
        assert report["total_value"] == "7751.50"
        assert len(report_service.stock_valuation(include_inactive=True)["items"]) == 3

    def test_profit_counts_completed_invoices_in_period(self, db_session, biller, admin, make_item):
        item = make_item(stock=50, selling_price="1000.00", purchase_price="700.00")
        lines = [{"item_id": item.id, "quantity": 2}]
        invoice_service.save_invoice(biller, {"document_date": "2025-06-01", "lines": lines}, "completed")
        invoice_service.save_invoice(biller, {"document_date": "2025-06-03", "lines": lines}, "draft")
        cancelled = invoice_service.save_invoice(biller, {"document_date": "2025-06-04", "lines": lines}, "completed")
        invoice_service.cancel_invoice(admin, cancelled.id)
        invoice_service.save_invoice(biller, {"document_date": "2025-07-01", "lines": lines}, "completed")

        june = report_service.profit_for_period(date(2025, 6, 1), date(2025, 6, 30))

        assert june == {"invoice_count": 1, "revenue": "2000.00", "cost": "1400.00", "profit": "600.00"}
        assert report_service.profit_for_period()["invoice_count"] == 2

    def test_unknown_report_type(self, db_session):
        with pytest.raises(ValidationError):
            report_service.tax_totals_for_period("receipt")


class TestInputParsing:

    @pytest.mark.parametrize("value", ["12.5", "1e3", True, 3.0, "", None])
    def test_parse_int_is_strict(self, value):
        with pytest.raises(ValidationError):
            parse_int(value, "quantity")

    def test_parse_int_accepts_digits(self):
        assert parse_int(" 42 ", "quantity") == 42

    @pytest.mark.parametrize("value", ["-1", "abc", "1.234", "NaN", "100000000"])
    def test_parse_money_rejects(self, value):
        with pytest.raises(ValidationError):
            parse_money(value, "unit_price")

    def test_parse_money_accepts_json_numbers(self):
        assert parse_money(199.5, "unit_price") == Decimal("199.5")

    def test_sanitize_input(self):
        assert sanitize_input('<script>alert(1)</script>Hello <i onclick=x>there</i>') == "Hello there"
        assert sanitize_input(None) == ""
