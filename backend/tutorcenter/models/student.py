"""
Modèle SQLAlchemy pour la table students.
Les champs bad_debt* ne sont modifiés que via les patchs de settlement_helpers.
"""

import uuid
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from tutorcenter.database import Base

# Valeurs du champ status partagées avec l'application front
STUDENT_STATUS_ACTIVE = "Đang học"
STUDENT_STATUS_WITHDRAWN = "Nghỉ học"


class Student(Base):
    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(200), nullable=False)
    status = Column(String(30), default=STUDENT_STATUS_ACTIVE)

    # Classe courante (dénormalisée), vidée lors d'un tất toán
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    class_ids = Column(JSONB, default=list)
    class_name = Column(String(100), nullable=True)

    registered_sessions = Column(Integer, default=0)   # Séances payées
    attended_sessions = Column(Integer, default=0)     # Séances consommées
    expected_end_date = Column(Date, nullable=True)

    # Nợ xấu
    bad_debt = Column(Boolean, default=False)
    bad_debt_sessions = Column(Integer, default=0)
    bad_debt_amount = Column(Integer, default=0)       # VND, entier
    bad_debt_date = Column(DateTime, nullable=True)
    bad_debt_note = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
