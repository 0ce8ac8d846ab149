"""
Modèle SQLAlchemy pour les présences élève par séance.

Entité externe pour le module bồi bài : il ne fait que la retrouver
(student_id, class_id, date) et réécrire son statut.
"""

import uuid
from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from tutorcenter.database import Base


class AttendanceStatus(str, Enum):
    PENDING = "PENDING"
    PRESENT = "PRESENT"
    LATE = "LATE"
    ABSENT = "ABSENT"
    RESERVED = "RESERVED"    # Absence excusée, cours prolongé
    TUTORED = "TUTORED"      # Absence rattrapée par un bồi bài


class StudentAttendance(Base):
    """Présence d'un élève à une séance de sa classe."""
    __tablename__ = "student_attendances"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String(20), default=AttendanceStatus.PENDING.value)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
