"""
Document numbering tests.

Verifies:
- Fiscal year boundaries (April 1 - March 31)
- PREFIX/FY/NNNN formatting
- Counters are per class and per fiscal year
- Rolled-back allocations give the number back
- Concurrent allocation never hands out a number twice
"""

import os
import tempfile
import threading
from datetime import date, datetime

import pytest

from gstbill import create_app, time_utils
from gstbill.errors import DuplicateDocumentNumber
from gstbill.extensions import db
from gstbill.models import DocumentClass, DocumentSequence, Invoice
from gstbill.services import document_service
from gstbill.services.concurrency import atomic
from gstbill.services.document_service import (
    DocumentSequenceError,
    allocate,
    allocate_unused,
    fiscal_year_label,
    format_document_number,
    peek_next_number,
)


class TestFiscalYear:

    @pytest.mark.parametrize("day,label", [
        (date(2025, 3, 31), "2024-25"),
        (date(2025, 4, 1), "2025-26"),
        (date(2025, 12, 31), "2025-26"),
        (date(2026, 1, 1), "2025-26"),
        (date(2099, 4, 1), "2099-00"),
    ])
    def test_label(self, day, label):
        assert fiscal_year_label(day) == label

    def test_format_pads_to_four_digits(self):
        assert format_document_number("INV", "2025-26", 1) == "INV/2025-26/0001"
        assert format_document_number("INV", "2025-26", 12345) == "INV/2025-26/12345"


class TestBusinessDate:

    def test_today_uses_business_clock(self, app, monkeypatch):
        # 19:00 UTC on 31 March is 00:30 IST on 1 April
        monkeypatch.setattr(time_utils, "utcnow", lambda: datetime(2025, 3, 31, 19, 0))
        with app.app_context():
            assert time_utils.today() == date(2025, 4, 1)
            assert fiscal_year_label(time_utils.today()) == "2025-26"

    def test_timezone_is_configurable(self, app, monkeypatch):
        monkeypatch.setattr(time_utils, "utcnow", lambda: datetime(2025, 3, 31, 19, 0))
        monkeypatch.setitem(app.config, "BUSINESS_TIMEZONE", "UTC")
        with app.app_context():
            assert time_utils.today() == date(2025, 3, 31)

    @pytest.mark.parametrize("value,expected", [
        ("2025-03-31", date(2025, 3, 31)),
        ("2025-03-31T19:00:00Z", date(2025, 4, 1)),
        ("2025-03-31T23:00:00+05:30", date(2025, 3, 31)),
        ("2025-03-31T23:59:00", date(2025, 3, 31)),
    ])
    def test_parse_document_date(self, app, value, expected):
        with app.app_context():
            assert time_utils.parse_document_date(value) == expected


class TestAllocate:

    def test_numbers_are_sequential(self, db_session):
        first = allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")
        second = allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")
        assert first == "INV/2025-26/0001"
        assert second == "INV/2025-26/0002"

    def test_new_fiscal_year_restarts_at_one(self, db_session):
        allocate(DocumentClass.INVOICE, "2024-25", prefix="INV")
        allocate(DocumentClass.INVOICE, "2024-25", prefix="INV")
        assert allocate(DocumentClass.INVOICE, "2025-26", prefix="INV") == "INV/2025-26/0001"

    def test_classes_have_separate_counters(self, db_session):
        allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")
        assert allocate(DocumentClass.PURCHASE, "2025-26", prefix="PUR") == "PUR/2025-26/0001"

    def test_counter_persists(self, db_session):
        allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")
        row = db_session.query(DocumentSequence).filter_by(document_class="invoice", fiscal_year="2025-26").one()
        assert row.current_value == 1

    def test_rollback_returns_the_number(self, db_session):
        allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")

        with pytest.raises(RuntimeError):
            with atomic():
                allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")
                raise RuntimeError("abort")

        assert allocate(DocumentClass.INVOICE, "2025-26", prefix="INV") == "INV/2025-26/0002"

    def test_peek_reserves_nothing(self, db_session):
        assert peek_next_number(DocumentClass.INVOICE, "2025-26", prefix="INV") == "INV/2025-26/0001"
        assert peek_next_number(DocumentClass.INVOICE, "2025-26", prefix="INV") == "INV/2025-26/0001"
        allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")
        assert peek_next_number(DocumentClass.INVOICE, "2025-26", prefix="INV") == "INV/2025-26/0002"

    def test_missing_arguments_rejected(self, db_session):
        with pytest.raises(DocumentSequenceError):
            allocate(DocumentClass.INVOICE, "", prefix="INV")
        with pytest.raises(DocumentSequenceError):
            allocate(DocumentClass.INVOICE, "2025-26", prefix="")

    def test_list_sequences(self, db_session):
        allocate(DocumentClass.PURCHASE, "2025-26", prefix="PUR")
        allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")
        rows = document_service.list_sequences()
        assert [(r.document_class, r.fiscal_year) for r in rows] == [
            ("invoice", "2025-26"),
            ("purchase", "2025-26"),
        ]


class TestAllocateUnused:

    def _store_invoice(self, db_session, number):
        db_session.add(Invoice(
            document_number=number,
            fiscal_year="2025-26",
            document_date=date(2025, 6, 1),
            customer_name="Restored",
        ))
        db_session.commit()

    def test_skips_numbers_already_on_documents(self, db_session):
        # Counter behind the stored documents, e.g. after restoring a backup
        self._store_invoice(db_session, "INV/2025-26/0001")
        self._store_invoice(db_session, "INV/2025-26/0002")
        assert allocate_unused(DocumentClass.INVOICE, "2025-26", prefix="INV") == "INV/2025-26/0003"

    def test_gives_up_after_attempts(self, db_session):
        self._store_invoice(db_session, "INV/2025-26/0001")
        self._store_invoice(db_session, "INV/2025-26/0002")
        with pytest.raises(DuplicateDocumentNumber) as exc_info:
            allocate_unused(DocumentClass.INVOICE, "2025-26", prefix="INV", attempts=2)
        assert exc_info.value.details["tried"] == ["INV/2025-26/0001", "INV/2025-26/0002"]


class TestConcurrentAllocation:
    """Threads share one database file; every number must be unique and gapless."""

    @pytest.fixture
    def file_app(self):
        tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(tmpdir.name, "sequences.db")
        app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        })
        with app.app_context():
            db.create_all()
        yield app
        with app.app_context():
            db.session.remove()
            db.drop_all()
            db.engine.dispose()
        tmpdir.cleanup()

    def test_no_duplicates_under_threads(self, file_app):
        results = []
        errors = []
        results_lock = threading.Lock()

        def worker():
            with file_app.app_context():
                try:
                    for _ in range(10):
                        number = allocate(DocumentClass.INVOICE, "2025-26", prefix="INV")
                        with results_lock:
                            results.append(number)
                except Exception as exc:
                    errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(results) == 50
        assert len(set(results)) == 50
        assert sorted(results) == [f"INV/2025-26/{n:04d}" for n in range(1, 51)]
