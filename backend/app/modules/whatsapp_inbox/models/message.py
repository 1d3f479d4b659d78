"""
Message ORM Model
SQLAlchemy model representing the 'messages' table.

Stores inbound and outbound WhatsApp messages per contact. The partial
unique index on (tenant_id, provider_message_id) is what makes webhook
redeliveries idempotent.
"""
from sqlalchemy import Column, BigInteger, Text, DateTime, Index, ForeignKey, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.shared.db.base import Base


class Message(Base):
    """
    ORM Model for the messages table.

    body is NULL for media-only messages; media holds the provider's media
    descriptor (url, mime type, caption, file name).
    """
    __tablename__ = "messages"

    id = Column(BigInteger, primary_key=True)

    # ============================================
    # OWNERSHIP
    # ============================================
    tenant_id = Column(Text, nullable=False)
    contact_id = Column(
        BigInteger,
        ForeignKey('contacts.id', ondelete='CASCADE'),
        nullable=False
    )

    # ============================================
    # CONTENT
    # ============================================
    direction = Column(Text, nullable=False)   # 'inbound' | 'outbound'
    body = Column(Text, nullable=True)
    media = Column(JSONB, nullable=True)
    status = Column(Text, nullable=False, default='received')

    # ============================================
    # PROVIDER TRACKING
    # ============================================
    provider_message_id = Column(Text, nullable=True)

    # ============================================
    # TIMESTAMPS
    # ============================================
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    contact = relationship("Contact", back_populates="messages")

    # ============================================
    # INDEXES
    # ============================================
    __table_args__ = (
        Index(
            'uq_messages_tenant_provider_id',
            'tenant_id', 'provider_message_id',
            unique=True,
            postgresql_where=text('provider_message_id IS NOT NULL'),
        ),
        Index('idx_messages_contact_created', 'contact_id', 'created_at'),
        Index('idx_messages_tenant_created', 'tenant_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Message(id={self.id}, contact_id={self.contact_id}, direction='{self.direction}', status='{self.status}')>"
