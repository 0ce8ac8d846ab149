"""
Lien bồi bài ↔ présence élève.

Ces fonctions ne commitent pas : l'appelant (tutoring_service) décide du commit.
"""

import uuid
import datetime as dt
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from tutorcenter.exceptions import NotFoundError
from tutorcenter.models.student_attendance import AttendanceStatus, StudentAttendance


def find_student_attendance(
    db: Session,
    student_id: uuid.UUID,
    class_id: uuid.UUID,
    attendance_date: dt.date,
) -> Optional[uuid.UUID]:
    """Retourne l'ID de la présence (élève, classe, date), ou None."""
    return db.execute(
        select(StudentAttendance.id)
        .where(
            StudentAttendance.student_id == student_id,
            StudentAttendance.class_id == class_id,
            StudentAttendance.date == attendance_date,
        )
        .limit(1)
    ).scalar()


def set_attendance_status(
    db: Session,
    attendance_id: uuid.UUID,
    status: AttendanceStatus,
) -> None:
    """Réécrit le statut d'une présence. Lève NotFoundError si elle n'existe plus."""
    attendance = db.get(StudentAttendance, attendance_id)
    if attendance is None:
        raise NotFoundError(f"Présence {attendance_id} introuvable.")

    attendance.status = status.value
    attendance.updated_at = datetime.now(timezone.utc)
