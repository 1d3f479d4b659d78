"""
Contact ORM Model
SQLAlchemy model representing the 'contacts' table.

One row per (tenant, phone). The phone is always stored in canonical
form (see app.shared.utils.phone_utils.normalize_phone).
"""
from sqlalchemy import Column, BigInteger, Text, Boolean, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from app.shared.db.base import Base, TimestampMixin


class Contact(Base, TimestampMixin):
    """
    ORM Model for the contacts table.

    Holds the WhatsApp profile we know about a phone number plus the
    inbox state (unread flag, last activity, last template sent).
    """
    __tablename__ = "contacts"

    id = Column(BigInteger, primary_key=True)

    # ============================================
    # IDENTITY
    # ============================================
    tenant_id = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)          # Canonical digits, e.g. 5511987654321
    name = Column(Text, nullable=True)
    is_whatsapp = Column(Boolean, nullable=False, default=True, server_default='true')

    # ============================================
    # PROVIDER PROFILE
    # ============================================
    photo_url = Column(Text, nullable=True)
    about = Column(Text, nullable=True)
    notify = Column(Text, nullable=True)          # Push name chosen by the contact
    short = Column(Text, nullable=True)
    vname = Column(Text, nullable=True)           # Verified business name
    presence_status = Column(Text, nullable=True)
    metadata_updated_at = Column(DateTime(timezone=True), nullable=True)
    photo_updated_at = Column(DateTime(timezone=True), nullable=True)
    presence_updated_at = Column(DateTime(timezone=True), nullable=True)

    # ============================================
    # INBOX STATE
    # ============================================
    chat_unread = Column(Boolean, nullable=False, default=False, server_default='false')
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_outbound_template = Column(Text, nullable=True)
    last_outbound_at = Column(DateTime(timezone=True), nullable=True)

    messages = relationship(
        "Message",
        back_populates="contact",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # ============================================
    # INDEXES
    # ============================================
    __table_args__ = (
        UniqueConstraint('tenant_id', 'phone', name='uq_contacts_tenant_phone'),
        Index('idx_contacts_tenant_last_message', 'tenant_id', 'last_message_at'),
    )

    def __repr__(self):
        return f"<Contact(id={self.id}, tenant='{self.tenant_id}', phone='{self.phone}')>"
