"""Create users, reset tokens, diagnostics and notifications

Revision ID: 3a1f5c2b9d04
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3a1f5c2b9d04'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('field_worker', 'admin', 'super_admin', name='userrole')
diagnostic_result = sa.Enum('positive', 'negative', 'inconclusive', name='diagnosticresult')
review_status = sa.Enum('pending', 'reviewed', 'verified', name='reviewstatus')
notification_type = sa.Enum('sms', 'email', name='notificationtype')
notification_priority = sa.Enum('urgent', 'routine', name='notificationpriority')
delivery_status = sa.Enum('pending', 'sent', 'failed', name='deliverystatus')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('phone_number', sa.String(), nullable=True),
        sa.Column('facility_name', sa.String(), nullable=True),
        sa.Column('district', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'password_reset_tokens',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_password_reset_tokens_user_id'), 'password_reset_tokens', ['user_id'], unique=False)
    op.create_index(op.f('ix_password_reset_tokens_token_hash'), 'password_reset_tokens', ['token_hash'], unique=True)

    op.create_table(
        'diagnostics',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('subject_id', sa.String(), nullable=False),
        sa.Column('submitted_by_id', sa.String(length=36), nullable=False),
        sa.Column('image_locator', sa.String(), nullable=False),
        sa.Column('result', diagnostic_result, nullable=False),
        sa.Column('confidence_score', sa.Integer(), nullable=True),
        sa.Column('parasite_count', sa.Integer(), nullable=True),
        sa.Column('symptoms', sa.JSON(), nullable=True),
        sa.Column('test_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('review_status', review_status, nullable=False),
        sa.Column('reviewed_by_id', sa.String(length=36), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['submitted_by_id'], ['users.id']),
        sa.ForeignKeyConstraint(['reviewed_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_diagnostics_subject_id'), 'diagnostics', ['subject_id'], unique=False)
    op.create_index(op.f('ix_diagnostics_submitted_by_id'), 'diagnostics', ['submitted_by_id'], unique=False)
    op.create_index(op.f('ix_diagnostics_result'), 'diagnostics', ['result'], unique=False)
    op.create_index(op.f('ix_diagnostics_review_status'), 'diagnostics', ['review_status'], unique=False)
    op.create_index(op.f('ix_diagnostics_created_at'), 'diagnostics', ['created_at'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('diagnostic_id', sa.String(length=36), nullable=True),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('recipient', sa.String(), nullable=False),
        sa.Column('subject', sa.String(), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('priority', notification_priority, nullable=False),
        sa.Column('status', delivery_status, nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('delivery_lock', sa.String(length=36), nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['diagnostic_id'], ['diagnostics.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index(op.f('ix_notifications_diagnostic_id'), 'notifications', ['diagnostic_id'], unique=False)
    op.create_index(op.f('ix_notifications_recipient'), 'notifications', ['recipient'], unique=False)
    op.create_index(op.f('ix_notifications_status'), 'notifications', ['status'], unique=False)
    op.create_index(op.f('ix_notifications_created_at'), 'notifications', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('diagnostics')
    op.drop_table('password_reset_tokens')
    op.drop_table('users')

    # Enum types only exist as separate objects on PostgreSQL
    bind = op.get_bind()
    for enum_type in (delivery_status, notification_priority, notification_type,
                      review_status, diagnostic_result, user_role):
        enum_type.drop(bind, checkfirst=True)
