"""Initial voucher schema: vouchers, usage log, audit log

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. vouchers (one row per purchase; remain kept within [0, total] by CHECK)
2. voucher_usages (append-only; pk preserves append order)
3. audit_log (append-only; JSON meta)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. VOUCHERS
    # ==========================================================================
    op.create_table('vouchers',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('remain', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=False),
        sa.Column('qr_source', sa.String(length=16), nullable=False),
        sa.Column('qr_data_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('remain >= 0 AND remain <= total', name='ck_vouchers_remain_range'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('seq'),
    )
    with op.batch_alter_table('vouchers', schema=None) as batch_op:
        batch_op.create_index('ix_vouchers_status_seq', ['status', 'seq'], unique=False)

    # ==========================================================================
    # 2. USAGE LOG
    # ==========================================================================
    op.create_table('voucher_usages',
        sa.Column('pk', sa.Integer(), nullable=False),
        sa.Column('usage_id', sa.String(length=32), nullable=False),
        sa.Column('voucher_id', sa.String(length=32), nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint('pk'),
        sa.UniqueConstraint('usage_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('voucher_usages', schema=None) as batch_op:
        batch_op.create_index('ix_voucher_usages_used_at', ['used_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_voucher_usages_voucher_id'), ['voucher_id'], unique=False)

    # ==========================================================================
    # 3. AUDIT LOG
    # ==========================================================================
    op.create_table('audit_log',
        sa.Column('pk', sa.Integer(), nullable=False),
        sa.Column('ts', sa.DateTime(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('voucher_id', sa.String(length=32), nullable=True),
        sa.Column('ip', sa.String(length=45), nullable=True),
        sa.Column('ua', sa.String(length=512), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('pk'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('audit_log', schema=None) as batch_op:
        batch_op.create_index('ix_audit_log_ts', ['ts'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_log_type'), ['type'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_log_voucher_id'), ['voucher_id'], unique=False)


def downgrade():
    with op.batch_alter_table('audit_log', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_audit_log_voucher_id'))
        batch_op.drop_index(batch_op.f('ix_audit_log_type'))
        batch_op.drop_index('ix_audit_log_ts')
    op.drop_table('audit_log')

    with op.batch_alter_table('voucher_usages', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_voucher_usages_voucher_id'))
        batch_op.drop_index('ix_voucher_usages_used_at')
    op.drop_table('voucher_usages')

    with op.batch_alter_table('vouchers', schema=None) as batch_op:
        batch_op.drop_index('ix_vouchers_status_seq')
    op.drop_table('vouchers')
