"""Initial BOM schema: tenants, products, materials, recipes, ledger, alerts

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16

"""
from alembic import op
import sqlalchemy as sa

revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table('tenants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('inventory_mode', sa.String(20), nullable=False, server_default='simple'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_products_tenant', 'products', ['tenant_id'])

    op.create_table('materials',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('supplier', sa.String(255), nullable=True),
        sa.Column('unit', sa.String(20), nullable=False),
        sa.Column('stock_quantity', sa.Numeric(precision=12, scale=3), nullable=False, server_default='0'),
        sa.Column('reorder_level', sa.Numeric(precision=12, scale=3), nullable=False, server_default='0'),
        sa.Column('unit_cost', sa.Numeric(precision=12, scale=4), nullable=False, server_default='0'),
        sa.Column('lifecycle', sa.String(20), nullable=False, server_default='active'),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_materials_stock_non_negative'),
        sa.CheckConstraint('reorder_level >= 0', name='ck_materials_reorder_non_negative'),
        sa.CheckConstraint('unit_cost >= 0', name='ck_materials_unit_cost_non_negative'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_materials_tenant', 'materials', ['tenant_id'])
    op.create_index('idx_materials_tenant_category', 'materials', ['tenant_id', 'category'])

    op.create_table('recipes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('yield_quantity', sa.Numeric(precision=10, scale=3), nullable=False, server_default='1'),
        sa.Column('yield_unit', sa.String(20), nullable=False, server_default='pcs'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('lifecycle', sa.String(20), nullable=False, server_default='active'),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('yield_quantity > 0', name='ck_recipes_yield_positive'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_recipes_tenant_product_active', 'recipes', ['tenant_id', 'product_id', 'is_active'])

    # At most one active recipe per product, enforced by the database as well
    op.create_index(
        'uq_recipes_one_active_per_product', 'recipes', ['tenant_id', 'product_id'],
        unique=True, postgresql_where=sa.text('is_active'),
    )

    op.create_table('recipe_components',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('recipe_id', sa.Uuid(), nullable=False),
        sa.Column('material_id', sa.Uuid(), nullable=False),
        sa.Column('quantity_required', sa.Numeric(precision=10, scale=4), nullable=False),
        sa.Column('waste_percentage', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('quantity_required > 0', name='ck_recipe_components_quantity_positive'),
        sa.CheckConstraint(
            'waste_percentage >= 0 AND waste_percentage < 100',
            name='ck_recipe_components_waste_range',
        ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['recipe_id'], ['recipes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('recipe_id', 'material_id', name='uq_recipe_components_recipe_material')
    )
    op.create_index('idx_recipe_components_tenant_material', 'recipe_components', ['tenant_id', 'material_id'])

    op.create_table('inventory_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('material_id', sa.Uuid(), nullable=False),
        sa.Column('transaction_type', sa.String(20), nullable=False),
        sa.Column('reason', sa.String(20), nullable=False),
        sa.Column('quantity_before', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('quantity_change', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('quantity_after', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reference_type', sa.String(100), nullable=True),
        sa.Column('reference_id', sa.String(100), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_inventory_transactions_tenant_material_date', 'inventory_transactions',
                    ['tenant_id', 'material_id', 'created_at'])
    op.create_index('idx_inventory_transactions_reference', 'inventory_transactions',
                    ['reference_type', 'reference_id'])

    op.create_table('stock_alerts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('material_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('current_stock', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('reorder_level', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notified_at', sa.DateTime(), nullable=True),
        sa.Column('acknowledged_by', sa.Uuid(), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
        sa.Column('acknowledged_notes', sa.Text(), nullable=True),
        sa.Column('resolved_by', sa.Uuid(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_notes', sa.Text(), nullable=True),
        sa.Column('dismissed_by', sa.Uuid(), nullable=True),
        sa.Column('dismissed_at', sa.DateTime(), nullable=True),
        sa.Column('dismissed_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_stock_alerts_tenant_status', 'stock_alerts', ['tenant_id', 'status'])
    op.create_index('idx_stock_alerts_tenant_material', 'stock_alerts', ['tenant_id', 'material_id'])


def downgrade() -> None:
    op.drop_index('idx_stock_alerts_tenant_material', table_name='stock_alerts')
    op.drop_index('idx_stock_alerts_tenant_status', table_name='stock_alerts')
    op.drop_table('stock_alerts')
    op.drop_index('idx_inventory_transactions_reference', table_name='inventory_transactions')
    op.drop_index('idx_inventory_transactions_tenant_material_date', table_name='inventory_transactions')
    op.drop_table('inventory_transactions')
    op.drop_index('idx_recipe_components_tenant_material', table_name='recipe_components')
    op.drop_table('recipe_components')
    op.drop_index('uq_recipes_one_active_per_product', table_name='recipes')
    op.drop_index('idx_recipes_tenant_product_active', table_name='recipes')
    op.drop_table('recipes')
    op.drop_index('idx_materials_tenant_category', table_name='materials')
    op.drop_index('idx_materials_tenant', table_name='materials')
    op.drop_table('materials')
    op.drop_index('idx_products_tenant', table_name='products')
    op.drop_table('products')
    op.drop_table('tenants')
