"""
Modèle SQLAlchemy pour les bồi bài (séances de rattrapage).

Un enregistrement = une séance manquée (ou mal suivie) à rattraper.
L'historique des statuts est stocké dans la même ligne (JSONB, append-only) :
il est toujours réécrit en entier dans le même commit que le statut.
"""

import uuid
from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from tutorcenter.database import Base


class TutoringType(str, Enum):
    ABSENCE_MAKEUP = "ABSENCE_MAKEUP"        # Nghỉ học
    WEAK_PERFORMANCE = "WEAK_PERFORMANCE"    # Học yếu


class TutoringStatus(str, Enum):
    NOT_SCHEDULED = "NOT_SCHEDULED"          # Chưa bồi
    SCHEDULED = "SCHEDULED"                  # Đã hẹn
    COMPLETED = "COMPLETED"                  # Đã bồi
    CHARGED_ABSENCE = "CHARGED_ABSENCE"      # Nghỉ tính phí
    RESERVED_ABSENCE = "RESERVED_ABSENCE"    # Nghỉ bảo lưu
    CANCELLED = "CANCELLED"                  # Hủy


class Tutoring(Base):
    """Séance de rattrapage liée à une séance manquée."""
    __tablename__ = "tutorings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    student_name = Column(String(200), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    class_name = Column(String(100), nullable=False)

    type = Column(String(30), nullable=False)
    status = Column(String(30), nullable=False, default=TutoringStatus.NOT_SCHEDULED.value)

    # Séance d'origine : date + lien direct (faible) vers la présence
    absent_date = Column(Date, nullable=True)
    student_attendance_id = Column(
        UUID(as_uuid=True), ForeignKey("student_attendances.id", ondelete="SET NULL"), nullable=True
    )

    # Planification
    scheduled_date = Column(Date, nullable=True)
    scheduled_time = Column(String(10), nullable=True)   # "HH:MM"
    tutor_id = Column(String(100), nullable=True)
    tutor_name = Column(String(200), nullable=True)

    # Clôture (statuts terminaux)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(String(100), nullable=True)
    charged_reason = Column(Text, nullable=True)         # Uniquement en CHARGED_ABSENCE

    # Suppression logique
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String(100), nullable=True)

    status_history = Column(JSONB, nullable=False, default=list)
    note = Column(Text, nullable=True)
    last_sync_error = Column(Text, nullable=True)        # Dernier effet de bord en échec

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
