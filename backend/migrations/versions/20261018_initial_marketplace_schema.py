"""initial marketplace schema

Revision ID: 7c1e9a2b4d60
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete marketplace schema:
- brands, categories, products: Catalogue with derived stock and channel prices
- vendors, purchase_bills, purchase_items, purchase_payments: Purchasing and the payment ledger
- wholesalers, resellers, retailers: Channel partners with registration workflow
- reseller_products: Reseller storefront imports
- admin_users, session_tokens: Back-office accounts and bearer sessions
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7c1e9a2b4d60'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def _partner_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('contact_number', sa.String(length=32), nullable=True),
        sa.Column('whatsapp_number', sa.String(length=32), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='inactive'),
        sa.Column('registration_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('auto_import_enabled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('auto_import_markup_type', sa.String(length=16), nullable=False, server_default='percentage'),
        sa.Column('auto_import_markup_value', sa.Numeric(12, 2), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.String(length=255), nullable=True),
    ]


def _partner_indexes(table):
    op.create_index(f'ix_{table}_username', table, ['username'], unique=True)
    op.create_index(f'ix_{table}_email', table, ['email'], unique=True)
    op.create_index(f'ix_{table}_contact_number', table, ['contact_number'])
    op.create_index(f'ix_{table}_registration_status', table, ['registration_status'])


def upgrade():
    # ============================================================================
    # Catalogue
    # ============================================================================
    op.create_table(
        'brands',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('logo_url', sa.String(length=512), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sa.UniqueConstraint('slug'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sa.UniqueConstraint('slug'),
        sqlite_autoincrement=True
    )

    # stock_quantity/status/cost_price are rebuilt from purchase bills
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('mrp', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('cost_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('wholesale_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('reseller_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('retail_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='out_of_stock'),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_new_arrival', sa.Boolean(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.ForeignKeyConstraint(['brand_id'], ['brands.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_category', 'products', ['category_id'])
    op.create_index('ix_products_brand', 'products', ['brand_id'])
    op.create_index('ix_products_status', 'products', ['status'])

    # ============================================================================
    # Purchasing
    # ============================================================================
    op.create_table(
        'vendors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('gst_number', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vendors_active', 'vendors', ['is_active'])

    # version_id is the optimistic lock used by the payment ledger
    op.create_table(
        'purchase_bills',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_number', sa.String(length=64), nullable=False),
        sa.Column('bill_date', sa.Date(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('shipping_charges', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('miscellaneous', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('original_box', sa.Numeric(12, 2), nullable=True, server_default='0'),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('balance_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('bill_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_bills_vendor', 'purchase_bills', ['vendor_id'])
    op.create_index('ix_purchase_bills_status', 'purchase_bills', ['status'])

    op.create_table(
        'purchase_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('cost_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('distributed_cost', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('final_cost_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.CheckConstraint('quantity > 0', name='ck_purchase_items_quantity_positive'),
        sa.ForeignKeyConstraint(['bill_id'], ['purchase_bills.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_items_bill', 'purchase_items', ['bill_id'])
    op.create_index('ix_purchase_items_product', 'purchase_items', ['product_id'])

    op.create_table(
        'purchase_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bill_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_mode', sa.String(length=32), nullable=False),
        sa.Column('transaction_details', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('amount > 0', name='ck_purchase_payments_amount_positive'),
        sa.ForeignKeyConstraint(['bill_id'], ['purchase_bills.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_payments_bill', 'purchase_payments', ['bill_id'])

    # ============================================================================
    # Channel partners
    # ============================================================================
    op.create_table(
        'wholesalers',
        *_partner_columns(),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('gst_number', sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _partner_indexes('wholesalers')

    op.create_table(
        'resellers',
        *_partner_columns(),
        sa.Column('shop_name', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _partner_indexes('resellers')

    op.create_table(
        'retailers',
        *_partner_columns(),
        sa.Column('address', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _partner_indexes('retailers')

    op.create_table(
        'reseller_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('reseller_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('selling_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('is_visible', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('markup_type', sa.String(length=16), nullable=True),
        sa.Column('markup_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('is_auto_imported', sa.Boolean(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['reseller_id'], ['resellers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reseller_id', 'product_id', name='uq_reseller_products_reseller_product'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_reseller_products_reseller_order', 'reseller_products', ['reseller_id', 'display_order'])

    # ============================================================================
    # Authentication
    # ============================================================================
    op.create_table(
        'admin_users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_admin_users_username', 'admin_users', ['username'], unique=True)

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('principal_type', sa.String(length=16), nullable=False),
        sa.Column('principal_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_principal', 'session_tokens', ['principal_type', 'principal_id'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('session_tokens')
    op.drop_table('admin_users')
    op.drop_table('reseller_products')
    op.drop_table('retailers')
    op.drop_table('resellers')
    op.drop_table('wholesalers')
    op.drop_table('purchase_payments')
    op.drop_table('purchase_items')
    op.drop_table('purchase_bills')
    op.drop_table('vendors')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('brands')
