"""
Tests unitaires de la prolongation de cours (Nghỉ bảo lưu).
"""

import uuid
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from tutorcenter.exceptions import NotFoundError
from tutorcenter.models.school_class import SchoolClass
from tutorcenter.models.student import Student
from tutorcenter.services.course_extension import (
    days_per_week_from_schedule,
    extend_student_course,
    extension_days,
)


# --- Helpers ---

def make_db_mock(school_class=None, student=None):
    db = MagicMock()

    def get(model, _id):
        return school_class if model is SchoolClass else student

    db.get.side_effect = get
    return db


def make_student(expected_end_date=None) -> Student:
    return Student(id=uuid.uuid4(), full_name="Lê Văn Cường", expected_end_date=expected_end_date)


# --- Planning ---

@pytest.mark.parametrize("schedule,expected", [
    ("Thứ 2, Thứ 4 - 18h00", 2),
    ("T3 - T5 - T7", 3),
    ("thứ 7, Chủ nhật", 2),
    ("CN", 1),
    ("Tối", 1),
    ("", 2),
    (None, 2),
])
def test_jours_par_semaine(schedule, expected):
    assert days_per_week_from_schedule(schedule) == expected


@pytest.mark.parametrize("days_per_week,expected", [(1, 7), (2, 4), (3, 3), (7, 1)])
def test_jours_de_prolongation(days_per_week, expected):
    assert extension_days(days_per_week) == expected


# --- extend_student_course ---

def test_prolongation_depuis_date_de_fin():
    student = make_student(date(2026, 6, 1))
    school_class = SchoolClass(id=uuid.uuid4(), name="IELTS A1", schedule="Thứ 2, Thứ 4")
    db = make_db_mock(school_class, student)

    result = extend_student_course(db, student.id, school_class.id)

    assert result == date(2026, 6, 5)
    assert student.expected_end_date == date(2026, 6, 5)
    db.commit.assert_not_called()


def test_prolongation_sans_date_de_fin():
    student = make_student()
    school_class = SchoolClass(id=uuid.uuid4(), name="IELTS A1", schedule="T2-T4-T6")

    result = extend_student_course(make_db_mock(school_class, student), student.id, school_class.id)

    assert result == date.today() + timedelta(days=3)


def test_prolongation_classe_inconnue():
    """Sans classe, on suppose deux séances par semaine."""
    student = make_student(date(2026, 6, 1))

    result = extend_student_course(make_db_mock(None, student), student.id, uuid.uuid4())

    assert result == date(2026, 6, 5)


def test_prolongation_eleve_introuvable():
    with pytest.raises(NotFoundError):
        extend_student_course(make_db_mock(None, None), uuid.uuid4(), uuid.uuid4())
