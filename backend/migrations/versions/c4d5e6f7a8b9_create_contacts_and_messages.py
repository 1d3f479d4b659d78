"""Create contacts and messages tables

Revision ID: c4d5e6f7a8b9
Revises:
Create Date: 2026-10-17

This migration adds:
- contacts: one row per (tenant, phone)
- messages: inbound / outbound messages, deduplicated per tenant by
  provider_message_id through a partial unique index
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'c4d5e6f7a8b9'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'contacts',
        sa.Column('id', sa.BigInteger(), primary_key=True),

        # Identity
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('is_whatsapp', sa.Boolean(), nullable=False, server_default='true'),

        # Provider profile
        sa.Column('photo_url', sa.Text(), nullable=True),
        sa.Column('about', sa.Text(), nullable=True),
        sa.Column('notify', sa.Text(), nullable=True),
        sa.Column('short', sa.Text(), nullable=True),
        sa.Column('vname', sa.Text(), nullable=True),
        sa.Column('presence_status', sa.Text(), nullable=True),
        sa.Column('metadata_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('photo_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('presence_updated_at', sa.DateTime(timezone=True), nullable=True),

        # Inbox state
        sa.Column('chat_unread', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_outbound_template', sa.Text(), nullable=True),
        sa.Column('last_outbound_at', sa.DateTime(timezone=True), nullable=True),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),

        sa.UniqueConstraint('tenant_id', 'phone', name='uq_contacts_tenant_phone'),
    )
    op.create_index('idx_contacts_tenant_last_message', 'contacts', ['tenant_id', 'last_message_at'])

    op.create_table(
        'messages',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('tenant_id', sa.Text(), nullable=False),
        sa.Column(
            'contact_id',
            sa.BigInteger(),
            sa.ForeignKey('contacts.id', ondelete='CASCADE'),
            nullable=False
        ),

        # Content
        sa.Column('direction', sa.Text(), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('media', postgresql.JSONB(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='received'),
        sa.Column('provider_message_id', sa.Text(), nullable=True),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        'uq_messages_tenant_provider_id',
        'messages',
        ['tenant_id', 'provider_message_id'],
        unique=True,
        postgresql_where=sa.text('provider_message_id IS NOT NULL'),
    )
    op.create_index('idx_messages_contact_created', 'messages', ['contact_id', 'created_at'])
    op.create_index('idx_messages_tenant_created', 'messages', ['tenant_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('idx_messages_tenant_created', table_name='messages')
    op.drop_index('idx_messages_contact_created', table_name='messages')
    op.drop_index('uq_messages_tenant_provider_id', table_name='messages')
    op.drop_table('messages')

    op.drop_index('idx_contacts_tenant_last_message', table_name='contacts')
    op.drop_table('contacts')
