"""create refresh_tokens table

Revision ID: 8f3b1c2d4e5a
Revises:
Create Date: 2024-06-03 00:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '8f3b1c2d4e5a'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'refresh_tokens',
        sa.Column('token', sa.String(length=256), nullable=False),
        sa.Column('user_id', sa.String(length=450), nullable=False),
        sa.Column('session_root', sa.String(length=256), nullable=False),
        sa.Column('parent_token', sa.String(length=256), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by_ip', sa.String(length=45), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_by_ip', sa.String(length=45), nullable=True),
        sa.Column('replaced_by_token', sa.String(length=256), nullable=True),
        sa.Column('revocation_reason', sa.String(length=32), nullable=True),
        sa.CheckConstraint(
            'expires_at > created_at', name=op.f('ck_refresh_tokens_expiry_after_creation')
        ),
        sa.CheckConstraint(
            'replaced_by_token IS NULL OR revoked_at IS NOT NULL',
            name=op.f('ck_refresh_tokens_replacement_requires_revocation'),
        ),
        sa.PrimaryKeyConstraint('token', name=op.f('pk_refresh_tokens')),
    )
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'])
    op.create_index('ix_refresh_tokens_session_root', 'refresh_tokens', ['session_root'])
    op.create_index('ix_refresh_tokens_expires_at', 'refresh_tokens', ['expires_at'])


def downgrade():
    op.drop_index('ix_refresh_tokens_expires_at', table_name='refresh_tokens')
    op.drop_index('ix_refresh_tokens_session_root', table_name='refresh_tokens')
    op.drop_index('ix_refresh_tokens_user_id', table_name='refresh_tokens')
    op.drop_table('refresh_tokens')
