"""Variant logo positions: per product variant logo layout

Stores where a logo variant is drawn on a product variant's mockup image,
as percentages of the image box plus a stacking order.

Revision ID: sf002_variant_logo_positions
Revises: sf001_initial_schema
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sf002_variant_logo_positions'
down_revision = 'sf001_initial_schema'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('variant_logo_positions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('org_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('product_variant_id', sa.Integer(), sa.ForeignKey('product_variants.id'), nullable=False),
        sa.Column('logo_id', sa.Integer(), sa.ForeignKey('logos.id'), nullable=False),
        sa.Column('logo_variant_id', sa.Integer(), sa.ForeignKey('logo_variants.id'), nullable=False),
        sa.Column('logo_placement_id', sa.Integer(), sa.ForeignKey('logo_placements.id'), nullable=False),
        sa.Column('view_type', sa.String(length=32), nullable=False),
        sa.Column('position_x_percent', sa.Float(), nullable=False),
        sa.Column('position_y_percent', sa.Float(), nullable=False),
        sa.Column('width_percent', sa.Float(), nullable=False),
        sa.Column('height_percent', sa.Float(), nullable=False),
        sa.Column('z_index', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_variant_logo_positions_org_id', 'variant_logo_positions', ['org_id'])
    op.create_index('ix_variant_logo_positions_logo_id', 'variant_logo_positions', ['logo_id'])
    op.create_index('ix_variant_logo_positions_logo_variant_id', 'variant_logo_positions', ['logo_variant_id'])
    op.create_index('ix_variant_logo_positions_variant_z', 'variant_logo_positions',
                    ['product_variant_id', 'z_index'])


def downgrade():
    op.drop_table('variant_logo_positions')
