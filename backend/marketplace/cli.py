# Overview: Flask CLI command groups for bootstrap, stock maintenance and partner onboarding.

# backend/marketplace/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--username admin --email admin@luxe.local --password "Password123!"]
#   Idempotent bootstrap: creates all tables and the first admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock maintenance:
# - python -m flask stock sync
#   Rebuild every product's stock quantity, cost price and status from purchase bills.
# - python -m flask stock recalc-costs [--dry-run]
#   Recompute weighted-average cost prices (report only with --dry-run).
#
# Channel partners:
# - python -m flask partners list reseller [--status pending]
#   List partners of one type.
# - python -m flask partners approve reseller 3
# - python -m flask partners reject reseller 3
#   Resolve a pending registration.
# - python -m flask partners seed-demo
#   DEV only: demo catalogue, vendor, purchase bill and one approved partner of each type.

import click
from flask.cli import with_appcontext

from .errors import MarketplaceError
from .extensions import db
from .models import AdminUser, Brand, Category, Product, Vendor, PARTNER_MODELS
from .services import (
    catalog_service,
    purchase_service,
    registration_service,
    stock_service,
    vendor_service,
)
from .services.auth_service import create_admin


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', default='admin', help='First admin username')
@click.option('--email', default='admin@luxe.local', help='First admin email')
@click.option('--password', default='Password123!', help='First admin password')
@with_appcontext
def init_system(username, email, password):
    """
    Initialize the marketplace: schema and the first admin account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing marketplace...")

    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(AdminUser).filter_by(username=username.lower()).first()
    if existing:
        click.echo(f"WARN  Admin '{username}' already exists, skipping...")
    else:
        try:
            admin = create_admin(username, email, password)
        except MarketplaceError as e:
            click.echo(f"FAIL Could not create admin '{username}': {e}")
            return
        click.echo(f"PASS Created admin: {admin.username} ({admin.email})")

    click.echo("\n" + "="*60)
    click.echo("DONE Marketplace Initialized Successfully!")
    click.echo("="*60)


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('stock')
def stock_group():
    """Stock and cost maintenance commands."""


@stock_group.command('sync')
@with_appcontext
def sync_stock():
    """Rebuild stock from every non-cancelled purchase bill."""
    try:
        result = stock_service.reconcile_stock()
    except MarketplaceError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS Synced stock for {result['updated_product_count']} products "
        f"from {result['contributing_bill_count']} bills"
    )


@stock_group.command('recalc-costs')
@click.option('--dry-run', is_flag=True, help='Report changes without writing them')
@with_appcontext
def recalc_costs(dry_run):
    """Recompute weighted-average cost prices."""
    try:
        result = stock_service.recalculate_average_costs(apply=not dry_run)
    except MarketplaceError as e:
        raise click.ClickException(str(e))

    for row in result["details"]:
        if row["needs_update"]:
            click.echo(f"  {row['sku']:<20} {row['old_cost_price']:>12} -> {row['new_cost_price']}")

    summary = result["summary"]
    if dry_run:
        click.echo(f"INFO {summary['products_that_need_update']} of {summary['total_products']} products need an update")
    else:
        click.echo(f"PASS Updated {summary['products_updated']} of {summary['total_products']} products")


@click.group('partners')
def partners_group():
    """Channel partner onboarding commands."""


@partners_group.command('list')
@click.argument('partner_type', type=click.Choice(list(PARTNER_MODELS)))
@click.option('--status', 'registration_status', help='pending, approved or rejected')
@with_appcontext
def list_partners(partner_type, registration_status):
    partners, total = registration_service.list_partners(partner_type, registration_status=registration_status)
    if not partners:
        click.echo("No partners found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<22} {'Email':<35} {'Registration':<14} {'Status'}")
    click.echo("="*90)
    for partner in partners:
        click.echo(
            f"{partner.id:<5} {partner.username:<22} {partner.email:<35} "
            f"{partner.registration_status:<14} {partner.status}"
        )
    click.echo(f"\nTotal: {total}")


@partners_group.command('approve')
@click.argument('partner_type', type=click.Choice(list(PARTNER_MODELS)))
@click.argument('partner_id', type=int)
@with_appcontext
def approve_partner(partner_type, partner_id):
    try:
        partner = registration_service.approve(partner_type, partner_id, reviewed_by="cli")
    except MarketplaceError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Approved {partner_type} {partner.username}")


@partners_group.command('reject')
@click.argument('partner_type', type=click.Choice(list(PARTNER_MODELS)))
@click.argument('partner_id', type=int)
@with_appcontext
def reject_partner(partner_type, partner_id):
    try:
        partner = registration_service.reject(partner_type, partner_id, reviewed_by="cli")
    except MarketplaceError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Rejected {partner_type} {partner.username}")


DEMO_PASSWORD = "demo1234"


@partners_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    DEV only: seed a small catalogue and one approved partner of each type.

    Skips anything that already exists, so it can be run repeatedly.
    """
    click.echo("START Seeding demo data...")

    brand = db.session.query(Brand).filter_by(slug="maison-demo").first() or catalog_service.create_brand("Maison Demo")
    category = db.session.query(Category).filter_by(slug="handbags").first() or catalog_service.create_category("Handbags")

    demo_products = [
        ("DEMO-TOTE", "Demo Leather Tote", "45000.00", "60000.00"),
        ("DEMO-CLUTCH", "Demo Evening Clutch", "18000.00", "25000.00"),
    ]
    products = []
    for sku, name, cost, mrp in demo_products:
        product = db.session.query(Product).filter_by(sku=sku).first()
        if not product:
            product = catalog_service.create_product({
                "sku": sku,
                "name": name,
                "category_id": category.id,
                "brand_id": brand.id,
                "mrp": mrp,
                "cost_price": cost,
            })
            click.echo(f"PASS Created product {sku}")
        products.append(product)

    vendor = db.session.query(Vendor).filter_by(name="Demo Supplies").first()
    if not vendor:
        vendor = vendor_service.create_vendor(name="Demo Supplies", contact_email="supplies@luxe.local")
        bill = purchase_service.create_purchase_bill(
            vendor_id=vendor.id,
            items=[
                {"product_id": p.id, "quantity": 2, "cost_price": p.cost_price}
                for p in products
            ],
        )
        click.echo(f"PASS Created vendor and purchase bill {bill.bill_number}")

    for index, (partner_type, model) in enumerate(PARTNER_MODELS.items(), start=1):
        email = f"demo-{partner_type}@luxe.local"
        if db.session.query(model.id).filter_by(email=email).first():
            click.echo(f"WARN  Demo {partner_type} already exists, skipping...")
            continue
        partner = registration_service.register_partner(
            partner_type,
            name=f"Demo {partner_type.capitalize()}",
            email=email,
            contact_number=f"900000000{index}",
            password=DEMO_PASSWORD,
        )
        registration_service.approve(partner_type, partner.id, reviewed_by="cli")
        click.echo(f"PASS Created {partner_type} {partner.username} / {DEMO_PASSWORD}")

    click.echo("DONE Demo data ready")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(partners_group)
