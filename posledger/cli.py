# Overview: Flask CLI command groups for bootstrap, inventory upkeep and receivables/payables.

# posledger/cli.py
# Commands Legend:
# Prereqs:
# - Set FLASK_APP (e.g. FLASK_APP="posledger:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system seed-demo
#   Demo branch, warehouse, products, opening stock, customer, supplier,
#   company settings and reference data.
#
# Inventory upkeep:
# - python -m flask inventory mark-expired
#   Flag active batches whose expiry date has passed.
# - python -m flask inventory levels [--warehouse-id 1]
#   Stock on hand per product and warehouse with weighted average cost.
# - python -m flask inventory low-stock
#   Products below their minimum stock level.
#
# Receivables/payables:
# - python -m flask accounts aging ar [--branch-id 1]
#   Aging buckets and per-counterparty balances.
# - python -m flask accounts refresh-overdue
#   Mark past-due open obligations overdue.
# - python -m flask accounts pay ar 12 150.00 --method cash [--reference OR-1001]
#   Apply a payment (retried on concurrency conflicts).

from datetime import timedelta
from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Customer, Supplier, Warehouse
from .money import quantize_money
from .services import inventory_service, product_service, receivables_service, reference_data_service, settings_service
from .services.concurrency import run_with_retry
from .services.errors import LedgerError
from .services.reference_data_service import ReferenceKind
from .time_utils import local_today


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


DEMO_REFERENCE_DATA = {
    ReferenceKind.PRODUCT_CATEGORIES: [
        {"name": "Carbonated Drinks", "code": "CARB", "is_system_defined": True},
        {"name": "Juices", "code": "JUICE"},
    ],
    ReferenceKind.EXPENSE_CATEGORIES: [
        {"name": "Utilities", "code": "UTIL", "is_system_defined": True},
    ],
    ReferenceKind.PAYMENT_METHODS: [
        {"name": "Cash", "code": "CASH", "is_system_defined": True, "applicable_to": ["expense", "pos", "ar", "ap"]},
        {"name": "GCash", "code": "GCASH", "applicable_to": ["pos", "ar"]},
    ],
    ReferenceKind.UNITS_OF_MEASURE: [
        {"name": "Bottle", "code": "BTL", "is_system_defined": True},
        {"name": "Case", "code": "CASE", "is_system_defined": True},
    ],
    ReferenceKind.EXPENSE_VENDORS: [
        {"name": "City Power Company", "phone": "(02) 1234-5678"},
    ],
}


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Load a small demo data set (skipped when the MAIN branch exists)."""
    db.create_all()
    if db.session.query(Branch).filter_by(code="MAIN").first():
        click.echo("WARN  Demo data already present, skipping.")
        return

    try:
        branch = Branch(name="Main Branch", code="MAIN", location="Downtown")
        db.session.add(branch)
        db.session.flush()
        warehouse = Warehouse(branch_id=branch.id, name="Main Warehouse", max_capacity=Decimal("10000"))
        db.session.add(warehouse)
        db.session.add(Customer(name="Corner Store", payment_terms="Net 15"))
        db.session.add(Supplier(company_name="Beverage Distributors Inc.", payment_terms="Net 30"))
        db.session.commit()
        click.echo(f"PASS Created branch {branch.code} and warehouse {warehouse.name}")

        settings_service.get_settings()
        db.session.commit()

        product = product_service.create_product(
            name="Cola 330ml",
            base_uom="Bottle",
            base_price=Decimal("25.00"),
            shelf_life_days=180,
            min_stock_level=48,
            category="Carbonated Drinks",
            alternate_uoms=[{"name": "Case", "conversion_factor": 24, "selling_price": Decimal("550.00")}],
        )
        today = local_today()
        inventory_service.add_stock(
            product_id=product.id, warehouse_id=warehouse.id, quantity=5, uom="Case",
            unit_cost=Decimal("432.00"), received_date=today, expiry_date=today + timedelta(days=30),
        )
        inventory_service.add_stock(
            product_id=product.id, warehouse_id=warehouse.id, quantity=5, uom="Case",
            unit_cost=Decimal("456.00"), received_date=today, expiry_date=today + timedelta(days=120),
        )
        click.echo(f"PASS Created product {product.name} with opening stock")

        for kind, rows in DEMO_REFERENCE_DATA.items():
            for row in rows:
                reference_data_service.create_item(kind, row)
        click.echo("PASS Loaded reference data")
    except LedgerError as e:
        click.echo(f"FAIL Error: {e.message}")
        return

    click.echo("DONE Demo data loaded.")


@click.group('inventory')
def inventory_group():
    """Inventory upkeep and inspection."""


@inventory_group.command('mark-expired')
@with_appcontext
def mark_expired():
    """Flag batches past their expiry date."""
    count = inventory_service.mark_expired_batches()
    click.echo(f"PASS Marked {count} batch(es) expired")


@inventory_group.command('levels')
@click.option('--warehouse-id', type=int, default=None, help='Limit to one warehouse')
@with_appcontext
def stock_levels(warehouse_id):
    """Stock on hand per product and warehouse."""
    levels = inventory_service.get_stock_levels(warehouse_id=warehouse_id)
    if not levels:
        click.echo("No stock on hand.")
        return
    for level in levels:
        click.echo(
            f"{level['product_name']} @ {level['warehouse_name']}: "
            f"{level['total_quantity']} {level['base_uom']} "
            f"(avg cost {quantize_money(level['weighted_average_cost'])}, {level['batch_count']} batches)"
        )


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    """Products below their minimum stock level."""
    rows = inventory_service.get_low_stock_products()
    if not rows:
        click.echo("PASS No products below minimum stock.")
        return
    for row in rows:
        click.echo(
            f"WARN  {row['product_name']}: {row['current_stock']} {row['base_uom']} "
            f"(minimum {row['min_stock_level']})"
        )


@click.group('accounts')
def accounts_group():
    """Receivables and payables."""


KIND_CHOICE = click.Choice([k.value for k in receivables_service.ObligationKind], case_sensitive=False)


@accounts_group.command('aging')
@click.argument('kind', type=KIND_CHOICE)
@click.option('--branch-id', type=int, default=None, help='Limit to one branch')
@with_appcontext
def aging(kind, branch_id):
    """Aging report for AR or AP."""
    report = receivables_service.get_aging_report(kind.lower(), branch_id=branch_id)
    click.echo(f"{kind.upper()} aging (total outstanding {quantize_money(report.total_outstanding)})")
    for label, bucket in report.buckets.items():
        click.echo(f"  {label:>6}: {bucket.count} open, {quantize_money(bucket.total)}")
    for entry in report.by_counterparty:
        click.echo(f"  - {entry.name}: {quantize_money(entry.total_balance)}")


@accounts_group.command('refresh-overdue')
@with_appcontext
def refresh_overdue():
    """Mark past-due open obligations overdue."""
    count = receivables_service.refresh_overdue_statuses()
    click.echo(f"PASS Marked {count} obligation(s) overdue")


@accounts_group.command('pay')
@click.argument('kind', type=KIND_CHOICE)
@click.argument('obligation_id', type=int)
@click.argument('amount')
@click.option('--method', 'payment_method', required=True, help='Payment method')
@click.option('--reference', 'reference_number', default=None, help='Reference number')
@with_appcontext
def pay(kind, obligation_id, amount, payment_method, reference_number):
    """Apply a payment to an AR or AP record."""
    try:
        obligation = run_with_retry(
            lambda: receivables_service.record_payment(
                kind.lower(), obligation_id, amount, payment_method, reference_number,
            )
        )
    except LedgerError as e:
        click.echo(f"FAIL Error: {e.message}")
        return
    click.echo(
        f"PASS Payment recorded. Balance: {quantize_money(obligation.balance)} "
        f"Status: {obligation.status}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(accounts_group)
