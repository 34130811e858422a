"""Initial storefront schema: tenants, catalog, logos, customizations, cart, orders

Creates the canonical schema in dependency order:
1. organizations, users, addresses
2. categories, products, product images, variants, variant images, size attributes
3. product groups and per-group product visibility
4. logos, logo variants, placements, variant/placement links
5. customizations, orders, cart items, order notes

Money columns are integer cents. org_id NULL on catalog tables means the
row belongs to the global catalog.

Revision ID: sf001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sf001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = False):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()))
    return cols


def upgrade():
    # ==========================================================================
    # STEP 1: Tenants and principals
    # ==========================================================================
    op.create_table('organizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('default_admin_id', sa.Integer(), nullable=True),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_organizations_status', 'organizations', ['status'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=120), nullable=True),
        sa.Column('last_name', sa.String(length=120), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='User'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_org_id', 'users', ['org_id'])
    op.create_index('ix_users_org_role', 'users', ['org_id', 'role'])

    op.create_table('addresses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False, server_default='shipping'),
        sa.Column('line1', sa.String(length=255), nullable=False),
        sa.Column('line2', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=False),
        sa.Column('state', sa.String(length=120), nullable=True),
        sa.Column('postal_code', sa.String(length=32), nullable=True),
        sa.Column('country', sa.String(length=64), nullable=False, server_default='US'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_addresses_user_id', 'addresses', ['user_id'])

    # ==========================================================================
    # STEP 2: Product catalog
    # ==========================================================================
    op.create_table('categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('title', sa.String(length=120), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'title', name='uq_categories_org_title'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_categories_org_id', 'categories', ['org_id'])

    op.create_table('products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('sub_category', sa.String(length=120), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'sku', name='uq_products_org_sku'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_org_id', 'products', ['org_id'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_org_active', 'products', ['org_id', 'is_active'])

    op.create_table('product_images',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('url', sa.String(length=512), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_images_product_id', 'product_images', ['product_id'])

    op.create_table('product_variants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('color', sa.String(length=64), nullable=True),
        sa.Column('sku', sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])

    op.create_table('variant_images',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('variant_id', sa.Integer(), sa.ForeignKey('product_variants.id'), nullable=False),
        sa.Column('url', sa.String(length=512), nullable=False),
        sa.Column('view_type', sa.String(length=16), nullable=False, server_default='front'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_variant_images_variant_id', 'variant_images', ['variant_id'])

    op.create_table('variant_size_attributes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('variant_id', sa.Integer(), sa.ForeignKey('product_variants.id'), nullable=False),
        sa.Column('size', sa.String(length=16), nullable=False),
        sa.Column('price_adjustment_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'size', name='uq_variant_size'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_variant_size_attributes_variant_id', 'variant_size_attributes', ['variant_id'])

    # ==========================================================================
    # STEP 3: Per-group product visibility
    # ==========================================================================
    op.create_table('product_groups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('title', sa.String(length=120), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'title', name='uq_product_groups_org_title'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_groups_org_id', 'product_groups', ['org_id'])

    op.create_table('group_product_visibility',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('product_groups.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('is_visible', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('group_id', 'product_id', name='uq_group_product'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_group_product_visibility_group_id', 'group_product_visibility', ['group_id'])
    op.create_index('ix_group_product_visibility_product_id', 'group_product_visibility', ['product_id'])

    # ==========================================================================
    # STEP 4: Logos and placements
    # ==========================================================================
    op.create_table('logos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_logos_org_id', 'logos', ['org_id'])

    op.create_table('logo_variants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('logo_id', sa.Integer(), sa.ForeignKey('logos.id'), nullable=False),
        sa.Column('color', sa.String(length=64), nullable=False),
        sa.Column('asset_url', sa.String(length=512), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_logo_variants_logo_id', 'logo_variants', ['logo_id'])

    op.create_table('logo_placements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('view', sa.String(length=8), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True,
    )

    op.create_table('logo_variants_placements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('logo_variant_id', sa.Integer(), sa.ForeignKey('logo_variants.id'), nullable=False),
        sa.Column('logo_placement_id', sa.Integer(), sa.ForeignKey('logo_placements.id'), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('logo_variant_id', 'logo_placement_id', name='uq_logo_variant_placement'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_logo_variants_placements_logo_variant_id', 'logo_variants_placements', ['logo_variant_id'])
    op.create_index('ix_logo_variants_placements_logo_placement_id', 'logo_variants_placements', ['logo_placement_id'])

    # ==========================================================================
    # STEP 5: Customizations, orders, cart
    # ==========================================================================
    op.create_table('customizations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('product_variant_id', sa.Integer(), sa.ForeignKey('product_variants.id'), nullable=False),
        sa.Column('logo_variant_id', sa.Integer(), sa.ForeignKey('logo_variants.id'), nullable=False),
        sa.Column('placement_id', sa.Integer(), sa.ForeignKey('logo_placements.id'), nullable=False),
        sa.Column('preview_asset_ref', sa.String(length=512), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_customizations_user_id', 'customizations', ['user_id'])
    op.create_index('ix_customizations_product_variant_id', 'customizations', ['product_variant_id'])
    op.create_index('ix_customizations_logo_variant_id', 'customizations', ['logo_variant_id'])
    op.create_index('ix_customizations_placement_id', 'customizations', ['placement_id'])

    op.create_table('orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('batch_id', sa.String(length=64), nullable=False),
        sa.Column('shipping_address_id', sa.Integer(), sa.ForeignKey('addresses.id'), nullable=False),
        sa.Column('billing_address_id', sa.Integer(), sa.ForeignKey('addresses.id'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Pending'),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=64), nullable=True),
        sa.Column('payment_status', sa.String(length=32), nullable=False, server_default='Unpaid'),
        sa.Column('snapshot_json', sa.Text(), nullable=False),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('batch_id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_org_id', 'orders', ['org_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_org_status_created', 'orders', ['org_id', 'status', 'created_at'])

    op.create_table('cart_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('customization_id', sa.Integer(), sa.ForeignKey('customizations.id'), nullable=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('sizes_json', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_total_cents', sa.Integer(), nullable=False),
        sa.Column('consumed', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])
    op.create_index('ix_cart_items_customization_id', 'cart_items', ['customization_id'])
    op.create_index('ix_cart_items_product_id', 'cart_items', ['product_id'])
    op.create_index('ix_cart_items_order_id', 'cart_items', ['order_id'])
    op.create_index('ix_cart_items_user_consumed', 'cart_items', ['user_id', 'consumed'])

    op.create_table('order_notes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('note', sa.Text(), nullable=False),
        sa.Column('status_at_note', sa.String(length=16), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_order_notes_order_id', 'order_notes', ['order_id'])


def downgrade():
    # Reverse dependency order
    for table_name in (
        'order_notes',
        'cart_items',
        'orders',
        'customizations',
        'logo_variants_placements',
        'logo_placements',
        'logo_variants',
        'logos',
        'group_product_visibility',
        'product_groups',
        'variant_size_attributes',
        'variant_images',
        'product_variants',
        'product_images',
        'products',
        'categories',
        'addresses',
        'users',
        'organizations',
    ):
        op.drop_table(table_name)
