"""
Modèle SQLAlchemy pour les factures de tất toán (clôture financière d'un élève).
"""

import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from tutorcenter.database import Base


class SettlementStatus(str, Enum):
    PAID = "PAID"
    BAD_DEBT = "BAD_DEBT"


class SettlementInvoice(Base):
    __tablename__ = "settlement_invoices"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_code = Column(String(30), nullable=True)  # STL-YYYYMMDD-XXX
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False)       # PAID, BAD_DEBT

    registered_sessions = Column(Integer, default=0)
    attended_sessions = Column(Integer, default=0)
    debt_sessions = Column(Integer, default=0)
    price_per_session = Column(Integer, nullable=False)
    total_amount = Column(Integer, default=0)

    note = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
