"""Initial schema: users, user_settings, mail_items, mail_item_categories

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create initial database schema."""

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('profile_image_url', sa.String(), nullable=True),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('provider_id', sa.String(), nullable=True),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # Create user_settings table (one row per user)
    op.create_table(
        'user_settings',
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('theme', sa.String(), nullable=False, server_default='system'),
        sa.Column('language', sa.String(), nullable=False, server_default='en'),
        sa.Column('timezone', sa.String(), nullable=False, server_default='UTC'),
        sa.Column('email_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('reminder_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('weekly_digest', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('auto_delete_old_items', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('smtp_host', sa.String(), nullable=True),
        sa.Column('smtp_port', sa.Integer(), nullable=True),
        sa.Column('smtp_secure', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('smtp_username', sa.String(), nullable=True),
        sa.Column('encrypted_smtp_password', sa.Text(), nullable=True),
        sa.Column('smtp_from_name', sa.String(), nullable=True),
        sa.Column('smtp_from_email', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id')
    )

    # Create mail_items table
    op.create_table(
        'mail_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('reminder_date', sa.Date(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=False),
        sa.Column('file_name', sa.Text(), nullable=False),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('upload_date', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_mail_items_user_id'), 'mail_items', ['user_id'], unique=False)
    op.create_index(op.f('ix_mail_items_category'), 'mail_items', ['category'], unique=False)
    op.create_index(op.f('ix_mail_items_upload_date'), 'mail_items', ['upload_date'], unique=False)

    # Create mail_item_categories table (additional standard + custom labels)
    op.create_table(
        'mail_item_categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('mail_item_id', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(), nullable=False),
        sa.Column('is_custom', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['mail_item_id'], ['mail_items.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mail_item_id', 'label', name='uq_mail_item_categories_item_label')
    )
    op.create_index('ix_mail_item_categories_label', 'mail_item_categories', ['label'], unique=False)


def downgrade() -> None:
    """Drop all tables."""

    op.drop_index('ix_mail_item_categories_label', table_name='mail_item_categories')
    op.drop_table('mail_item_categories')

    op.drop_index(op.f('ix_mail_items_upload_date'), table_name='mail_items')
    op.drop_index(op.f('ix_mail_items_category'), table_name='mail_items')
    op.drop_index(op.f('ix_mail_items_user_id'), table_name='mail_items')
    op.drop_table('mail_items')

    op.drop_table('user_settings')

    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
