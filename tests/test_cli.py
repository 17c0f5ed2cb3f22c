# Overview: Pytest coverage for the Flask CLI command groups.

from decimal import Decimal

from posledger.models import Branch, InventoryBatch
from posledger.services import receivables_service
from posledger.services.reference_data_service import ReferenceKind, list_items


class TestSystemCommands:

    def test_init_db(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init-db"])
        assert result.exit_code == 0
        assert "PASS Database tables created." in result.output

    def test_seed_demo_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "seed-demo"])
        assert first.exit_code == 0
        assert "DONE Demo data loaded." in first.output
        assert db_session.query(Branch).filter_by(code="MAIN").count() == 1
        assert db_session.query(InventoryBatch).count() == 2
        assert len(list_items(ReferenceKind.UNITS_OF_MEASURE)) == 2

        second = runner.invoke(args=["system", "seed-demo"])
        assert "skipping" in second.output
        assert db_session.query(InventoryBatch).count() == 2


class TestInventoryCommands:

    def test_levels(self, app, db_session, product, add_batch):
        add_batch(10, 4)
        add_batch(30, 8)
        result = app.test_cli_runner().invoke(args=["inventory", "levels"])
        assert result.exit_code == 0
        assert "Cola 330ml @ Main Warehouse" in result.output
        assert "avg cost 7.00, 2 batches" in result.output

    def test_low_stock(self, app, db_session, product, add_batch):
        add_batch(3, 4)
        result = app.test_cli_runner().invoke(args=["inventory", "low-stock"])
        assert "WARN  Cola 330ml" in result.output

    def test_mark_expired(self, app, db_session, add_batch):
        # fixture batches expire in 2025, before the real calendar day
        add_batch(3, 4)
        result = app.test_cli_runner().invoke(args=["inventory", "mark-expired"])
        assert result.exit_code == 0
        assert "PASS Marked 1 batch(es) expired" in result.output


class TestAccountsCommands:

    def test_pay_and_aging(self, app, db_session, branch, customer):
        ar = receivables_service.create_ar(
            branch_id=branch.id,
            customer_id=customer.id,
            customer_name=customer.name,
            total_amount=Decimal("500"),
        )
        runner = app.test_cli_runner()

        result = runner.invoke(args=["accounts", "pay", "ar", str(ar.id), "150.00", "--method", "cash"])
        assert result.exit_code == 0
        assert "PASS Payment recorded. Balance: 350.00 Status: partial" in result.output

        aging = runner.invoke(args=["accounts", "aging", "AR"])
        assert "AR aging (total outstanding 350.00)" in aging.output
        assert "Corner Store: 350.00" in aging.output

    def test_overpayment_reported(self, app, db_session, branch, customer):
        ar = receivables_service.create_ar(
            branch_id=branch.id, customer_name=customer.name, total_amount=Decimal("100"),
        )
        result = app.test_cli_runner().invoke(args=["accounts", "pay", "ar", str(ar.id), "150", "--method", "cash"])
        assert "FAIL Error: Payment amount exceeds outstanding balance" in result.output

    def test_refresh_overdue(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["accounts", "refresh-overdue"])
        assert "PASS Marked 0 obligation(s) overdue" in result.output
