"""init: prize catalogue, awards, redemptions, otps, sms log, audit log

Revision ID: 4a1f0c2e9b7d
Revises:
Create Date: 2026-10-19 09:12:41.310552

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '4a1f0c2e9b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

award_status = sa.Enum('Awarded', 'Redeemed', 'Expired', 'Cancelled', name='award_status')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('competitions',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_competitions'))
    )
    op.create_index(op.f('ix_competitions_name'), 'competitions', ['name'], unique=False)

    op.create_table('prize_pools',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('competition_id', sa.Integer(), nullable=True),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['competition_id'], ['competitions.id'], name=op.f('fk_prize_pools_competition_id_competitions'), ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_prize_pools'))
    )
    op.create_index(op.f('ix_prize_pools_competition_id'), 'prize_pools', ['competition_id'], unique=False)
    op.create_index(op.f('ix_prize_pools_name'), 'prize_pools', ['name'], unique=False)

    op.create_table('prizes',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('pool_id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('monetary_value', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('image_url', sa.String(length=500), nullable=True),
    sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
    sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
    sa.Column('total_quantity', sa.Integer(), server_default='0', nullable=False),
    sa.Column('remaining_quantity', sa.Integer(), server_default='0', nullable=False),
    sa.Column('awarded_quantity', sa.Integer(), server_default='0', nullable=False),
    sa.Column('redeemed_quantity', sa.Integer(), server_default='0', nullable=False),
    sa.Column('cancelled_quantity', sa.Integer(), server_default='0', nullable=False),
    sa.Column('expired_quantity', sa.Integer(), server_default='0', nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('total_quantity >= 0', name=op.f('ck_prizes_total_nonneg')),
    sa.CheckConstraint('remaining_quantity >= 0', name=op.f('ck_prizes_remaining_nonneg')),
    sa.CheckConstraint('awarded_quantity >= 0', name=op.f('ck_prizes_awarded_nonneg')),
    sa.CheckConstraint('redeemed_quantity >= 0', name=op.f('ck_prizes_redeemed_nonneg')),
    sa.CheckConstraint('cancelled_quantity >= 0', name=op.f('ck_prizes_cancelled_nonneg')),
    sa.CheckConstraint('expired_quantity >= 0', name=op.f('ck_prizes_expired_nonneg')),
    sa.CheckConstraint('remaining_quantity + awarded_quantity = total_quantity', name=op.f('ck_prizes_ledger_balanced')),
    sa.ForeignKeyConstraint(['pool_id'], ['prize_pools.id'], name=op.f('fk_prizes_pool_id_prize_pools'), ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_prizes'))
    )
    op.create_index(op.f('ix_prizes_pool_id'), 'prizes', ['pool_id'], unique=False)
    op.create_index(op.f('ix_prizes_is_active'), 'prizes', ['is_active'], unique=False)
    op.create_index('ix_prizes_pool_available', 'prizes', ['pool_id', 'is_active', 'remaining_quantity'], unique=False)

    op.create_table('external_users',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('phone_number', sa.String(length=20), nullable=False),
    sa.Column('first_name', sa.String(length=100), nullable=True),
    sa.Column('last_name', sa.String(length=100), nullable=True),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_external_users'))
    )
    op.create_index(op.f('ix_external_users_phone_number'), 'external_users', ['phone_number'], unique=True)

    op.create_table('prize_awards',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('prize_id', sa.Integer(), nullable=False),
    sa.Column('competition_id', sa.Integer(), nullable=True),
    sa.Column('external_user_id', sa.Integer(), nullable=True),
    sa.Column('phone_number', sa.String(length=20), nullable=False),
    sa.Column('status', award_status, nullable=False),
    sa.Column('awarded_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
    sa.Column('award_method', sa.String(length=20), nullable=False),
    sa.Column('awarded_by', sa.String(length=200), nullable=True),
    sa.Column('notification_channel', sa.String(length=20), nullable=True),
    sa.Column('notification_status', sa.String(length=20), nullable=False),
    sa.Column('external_reference', sa.String(length=200), nullable=True),
    sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('cancel_reason', sa.Text(), nullable=True),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['prize_id'], ['prizes.id'], name=op.f('fk_prize_awards_prize_id_prizes'), ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['competition_id'], ['competitions.id'], name=op.f('fk_prize_awards_competition_id_competitions'), ondelete='RESTRICT'),
    sa.ForeignKeyConstraint(['external_user_id'], ['external_users.id'], name=op.f('fk_prize_awards_external_user_id_external_users'), ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_prize_awards'))
    )
    op.create_index(op.f('ix_prize_awards_prize_id'), 'prize_awards', ['prize_id'], unique=False)
    op.create_index(op.f('ix_prize_awards_competition_id'), 'prize_awards', ['competition_id'], unique=False)
    op.create_index(op.f('ix_prize_awards_external_user_id'), 'prize_awards', ['external_user_id'], unique=False)
    op.create_index(op.f('ix_prize_awards_phone_number'), 'prize_awards', ['phone_number'], unique=False)
    op.create_index(op.f('ix_prize_awards_status'), 'prize_awards', ['status'], unique=False)
    op.create_index('ix_prize_awards_phone_status', 'prize_awards', ['phone_number', 'status'], unique=False)

    op.create_table('prize_redemptions',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('prize_award_id', sa.Integer(), nullable=False),
    sa.Column('redeemed_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('channel', sa.String(length=20), nullable=False),
    sa.Column('redeemed_from_ip', sa.String(length=64), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('reference', sa.String(length=20), nullable=False),
    sa.ForeignKeyConstraint(['prize_award_id'], ['prize_awards.id'], name=op.f('fk_prize_redemptions_prize_award_id_prize_awards'), ondelete='RESTRICT'),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_prize_redemptions')),
    sa.UniqueConstraint('prize_award_id', name='uq_prize_redemptions_prize_award_id'),
    sa.UniqueConstraint('reference', name=op.f('uq_prize_redemptions_reference'))
    )

    op.create_table('otps',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('phone_number', sa.String(length=20), nullable=False),
    sa.Column('code', sa.String(length=12), nullable=False),
    sa.Column('purpose', sa.String(length=40), nullable=False),
    sa.Column('related_entity_id', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('attempt_count', sa.Integer(), server_default='0', nullable=False),
    sa.Column('max_attempts', sa.Integer(), server_default='3', nullable=False),
    sa.Column('is_used', sa.Boolean(), server_default='false', nullable=False),
    sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_otps'))
    )
    op.create_index('ix_otps_phone_purpose_used', 'otps', ['phone_number', 'purpose', 'is_used'], unique=False)

    op.create_table('sms_messages',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('phone_number', sa.String(length=20), nullable=False),
    sa.Column('message', sa.Text(), nullable=False),
    sa.Column('message_type', sa.String(length=40), nullable=False),
    sa.Column('related_entity_type', sa.String(length=40), nullable=True),
    sa.Column('related_entity_id', sa.Integer(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('provider_reference', sa.String(length=100), nullable=True),
    sa.Column('failure_reason', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_sms_messages'))
    )
    op.create_index(op.f('ix_sms_messages_phone_number'), 'sms_messages', ['phone_number'], unique=False)

    op.create_table('audit_logs',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('entity_type', sa.String(length=40), nullable=False),
    sa.Column('entity_id', sa.String(length=40), nullable=False),
    sa.Column('action', sa.String(length=20), nullable=False),
    sa.Column('subject_id', sa.String(length=200), nullable=True),
    sa.Column('details', sa.Text(), nullable=True),
    sa.Column('ip_address', sa.String(length=64), nullable=True),
    sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_logs'))
    )
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_audit_logs_entity', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index(op.f('ix_sms_messages_phone_number'), table_name='sms_messages')
    op.drop_table('sms_messages')
    op.drop_index('ix_otps_phone_purpose_used', table_name='otps')
    op.drop_table('otps')
    op.drop_table('prize_redemptions')
    op.drop_index('ix_prize_awards_phone_status', table_name='prize_awards')
    op.drop_index(op.f('ix_prize_awards_status'), table_name='prize_awards')
    op.drop_index(op.f('ix_prize_awards_phone_number'), table_name='prize_awards')
    op.drop_index(op.f('ix_prize_awards_external_user_id'), table_name='prize_awards')
    op.drop_index(op.f('ix_prize_awards_competition_id'), table_name='prize_awards')
    op.drop_index(op.f('ix_prize_awards_prize_id'), table_name='prize_awards')
    op.drop_table('prize_awards')
    award_status.drop(op.get_bind(), checkfirst=True)
    op.drop_index(op.f('ix_external_users_phone_number'), table_name='external_users')
    op.drop_table('external_users')
    op.drop_index('ix_prizes_pool_available', table_name='prizes')
    op.drop_index(op.f('ix_prizes_is_active'), table_name='prizes')
    op.drop_index(op.f('ix_prizes_pool_id'), table_name='prizes')
    op.drop_table('prizes')
    op.drop_index(op.f('ix_prize_pools_name'), table_name='prize_pools')
    op.drop_index(op.f('ix_prize_pools_competition_id'), table_name='prize_pools')
    op.drop_table('prize_pools')
    op.drop_index(op.f('ix_competitions_name'), table_name='competitions')
    op.drop_table('competitions')
