"""
Tests d'intégration API pour la situation financière des élèves (nợ xấu, tất toán).
"""

import uuid
from unittest.mock import patch

from tutorcenter.exceptions import NotFoundError
from tutorcenter.schemas.student import (
    BadDebtAction,
    BadDebtReconcileResult,
    SettlementCheckResult,
    SettlementResponse,
    StudentResponse,
)

SERVICE = "tutorcenter.routers.students.bad_debt_service"


# --- Helpers ---

def make_student_response(**kwargs) -> StudentResponse:
    return StudentResponse(
        id=kwargs.get("id", uuid.uuid4()),
        full_name="Phạm Thu Hà",
        status=kwargs.get("status", "Đang học"),
        registered_sessions=10,
        attended_sessions=12,
        bad_debt=kwargs.get("bad_debt", False),
        bad_debt_sessions=kwargs.get("bad_debt_sessions", 0),
        bad_debt_amount=kwargs.get("bad_debt_amount", 0),
    )


# ============================================================
# GET /api/v1/students/{id}/settlement-status
# ============================================================

def test_settlement_status(client):
    result = SettlementCheckResult(has_bad_debt_invoice=False, has_paid_invoice=True, paid_invoice_code="STL-20251229-217")
    with patch(f"{SERVICE}.check_settlement_status", return_value=result):
        response = client.get(f"/api/v1/students/{uuid.uuid4()}/settlement-status")

    assert response.status_code == 200
    assert response.json() == {
        "has_bad_debt_invoice": False,
        "has_paid_invoice": True,
        "paid_invoice_code": "STL-20251229-217",
    }


# ============================================================
# POST /api/v1/students/{id}/bad-debt/reconcile
# ============================================================

def test_reconcile_succes(client):
    student_id = uuid.uuid4()
    result = BadDebtReconcileResult(
        student_id=student_id,
        action=BadDebtAction.AUTO_SET_BAD_DEBT,
        settlement=SettlementCheckResult(has_bad_debt_invoice=False, has_paid_invoice=False),
        applied_update={"bad_debt": True, "bad_debt_sessions": 2, "bad_debt_amount": 300000},
    )
    with patch(f"{SERVICE}.reconcile_bad_debt", return_value=result):
        response = client.post(f"/api/v1/students/{student_id}/bad-debt/reconcile")

    assert response.status_code == 200
    assert response.json()["action"] == "AUTO_SET_BAD_DEBT"
    assert response.json()["applied_update"]["bad_debt_amount"] == 300000


def test_reconcile_eleve_introuvable(client):
    with patch(f"{SERVICE}.reconcile_bad_debt", side_effect=NotFoundError("Élève introuvable.")):
        response = client.post(f"/api/v1/students/{uuid.uuid4()}/bad-debt/reconcile")
    assert response.status_code == 404


# ============================================================
# PATCH /api/v1/students/{id}/status
# ============================================================

def test_change_status(client):
    with patch(f"{SERVICE}.change_student_status") as mock:
        mock.return_value = make_student_response(status="Nghỉ học", bad_debt=True, bad_debt_sessions=2)
        response = client.patch(f"/api/v1/students/{uuid.uuid4()}/status", json={"status": " Nghỉ học "})

    assert response.status_code == 200
    assert response.json()["bad_debt"] is True
    assert mock.call_args[0][2] == "Nghỉ học"


def test_change_status_vide(client):
    response = client.patch(f"/api/v1/students/{uuid.uuid4()}/status", json={"status": "  "})
    assert response.status_code == 422


# ============================================================
# POST /api/v1/students/{id}/settlement
# ============================================================

def test_settlement_succes(client):
    student_id = uuid.uuid4()
    result = SettlementResponse(
        student_id=student_id,
        invoice_id=uuid.uuid4(),
        invoice_code="STL-20260318-007",
        settlement_type="BAD_DEBT",
        debt_sessions=2,
        price_per_session=150000,
        total_amount=300000,
        student=make_student_response(id=student_id, status="Nghỉ học", bad_debt=True, bad_debt_amount=300000),
    )
    with patch(f"{SERVICE}.settle_student", return_value=result) as mock:
        response = client.post(f"/api/v1/students/{student_id}/settlement", json={"settlement_type": "BAD_DEBT"})

    assert response.status_code == 201
    assert response.json()["total_amount"] == 300000
    assert response.json()["student"]["status"] == "Nghỉ học"
    assert mock.call_args[0][2].settlement_type.value == "BAD_DEBT"


def test_settlement_type_invalide(client):
    response = client.post(f"/api/v1/students/{uuid.uuid4()}/settlement", json={"settlement_type": "PARTIAL"})
    assert response.status_code == 422


def test_settlement_prix_invalide(client):
    response = client.post(
        f"/api/v1/students/{uuid.uuid4()}/settlement",
        json={"settlement_type": "PAID", "price_per_session": -1},
    )
    assert response.status_code == 422
