"""
Prolongation du cours d'un élève après un Nghỉ bảo lưu (absence excusée).

La date de fin prévue recule d'une séance, soit ceil(7 / séances par semaine) jours.
"""

import math
import re
import uuid
import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from tutorcenter.exceptions import NotFoundError
from tutorcenter.models.school_class import SchoolClass
from tutorcenter.models.student import Student

logger = logging.getLogger(__name__)

DEFAULT_DAYS_PER_WEEK = 2

_DAY_PATTERNS = [
    re.compile(r"thứ\s*[2-7]", re.IGNORECASE),
    re.compile(r"t[2-7]", re.IGNORECASE),
    re.compile(r"chủ\s*nhật", re.IGNORECASE),
    re.compile(r"cn", re.IGNORECASE),
]


def days_per_week_from_schedule(schedule: Optional[str]) -> int:
    """
    Compte les jours de cours dans un planning libre ("Thứ 2, Thứ 4", "T3-T5", "CN").
    Planning vide → 2 par défaut ; jamais moins de 1.
    """
    if not schedule:
        return DEFAULT_DAYS_PER_WEEK

    day_count = sum(len(pattern.findall(schedule)) for pattern in _DAY_PATTERNS)
    return max(day_count, 1)


def extension_days(days_per_week: int) -> int:
    return math.ceil(7 / days_per_week)


def extend_student_course(db: Session, student_id: uuid.UUID, class_id: uuid.UUID) -> date:
    """
    Recule expected_end_date de l'élève d'une séance de la classe donnée.
    Part d'aujourd'hui si aucune date de fin n'est connue.
    Retourne la nouvelle date. Ne commite pas.
    """
    school_class = db.get(SchoolClass, class_id)
    days = extension_days(days_per_week_from_schedule(school_class.schedule if school_class else None))

    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError(f"Élève {student_id} introuvable.")

    current_end = student.expected_end_date or date.today()
    student.expected_end_date = current_end + timedelta(days=days)

    logger.info(
        "Cours prolongé : élève %s, +%d jour(s) → %s",
        student_id, days, student.expected_end_date,
    )
    return student.expected_end_date
