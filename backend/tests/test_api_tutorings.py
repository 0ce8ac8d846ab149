"""
Tests d'intégration API pour les bồi bài.
Testent les URLs, les codes HTTP, la traduction des erreurs métier et le format des réponses.
"""

import uuid
from datetime import date, datetime, timezone
from unittest.mock import patch

from tutorcenter.exceptions import IllegalTransitionError, InvalidArgumentError, NotFoundError
from tutorcenter.schemas.tutoring import (
    AttendanceLinkReport,
    SyncWarning,
    TutoringActionResult,
    TutoringResponse,
)

SERVICE = "tutorcenter.routers.tutorings.tutoring_service"


# --- Helpers ---

def make_tutoring_response(**kwargs) -> TutoringResponse:
    now = datetime.now(timezone.utc)
    status = kwargs.get("status", "NOT_SCHEDULED")
    return TutoringResponse(
        id=kwargs.get("id", uuid.uuid4()),
        student_id=uuid.uuid4(),
        student_name="Nguyễn Văn An",
        class_id=uuid.uuid4(),
        class_name="IELTS 5.0 - A1",
        type=kwargs.get("type", "ABSENCE_MAKEUP"),
        status=status,
        absent_date=date(2026, 3, 2),
        deleted_at=kwargs.get("deleted_at"),
        deleted_by=kwargs.get("deleted_by"),
        status_history=[{"status": status, "changed_at": now, "changed_by": "system"}],
        created_at=now,
        updated_at=now,
    )


def make_result(status="SCHEDULED", warnings=None) -> TutoringActionResult:
    return TutoringActionResult(tutoring=make_tutoring_response(status=status), warnings=warnings or [])


def create_payload(**overrides) -> dict:
    payload = {
        "student_id": str(uuid.uuid4()),
        "student_name": "Nguyễn Văn An",
        "class_id": str(uuid.uuid4()),
        "class_name": "IELTS 5.0 - A1",
        "type": "ABSENCE_MAKEUP",
        "absent_date": "2026-03-02",
    }
    payload.update(overrides)
    return payload


# ============================================================
# POST /api/v1/tutorings
# ============================================================

def test_create_succes(client):
    with patch(f"{SERVICE}.create_tutoring") as mock:
        mock.return_value = make_tutoring_response()
        response = client.post("/api/v1/tutorings?actor_id=staff-1", json=create_payload())

    assert response.status_code == 201
    assert response.json()["status"] == "NOT_SCHEDULED"
    assert len(response.json()["status_history"]) == 1
    assert mock.call_args.kwargs["created_by"] == "staff-1"


def test_create_type_invalide(client):
    response = client.post("/api/v1/tutorings", json=create_payload(type="Nghỉ học"))
    assert response.status_code == 422


def test_create_statut_initial_terminal(client):
    response = client.post("/api/v1/tutorings", json=create_payload(status="COMPLETED"))
    assert response.status_code == 422


def test_create_sans_eleve(client):
    payload = create_payload()
    del payload["student_id"]
    response = client.post("/api/v1/tutorings", json=payload)
    assert response.status_code == 422


# ============================================================
# GET /api/v1/tutorings
# ============================================================

def test_list_filtres_transmis(client):
    student_id = uuid.uuid4()
    with patch(f"{SERVICE}.list_tutorings") as mock:
        mock.return_value = [make_tutoring_response(status="SCHEDULED")]
        response = client.get(f"/api/v1/tutorings?status=SCHEDULED&student_id={student_id}&only_deleted=true")

    assert response.status_code == 200
    assert len(response.json()) == 1
    filters = mock.call_args[0][1]
    assert filters.status.value == "SCHEDULED"
    assert filters.student_id == student_id
    assert filters.only_deleted is True
    assert filters.include_deleted is False


def test_list_statut_invalide(client):
    response = client.get("/api/v1/tutorings?status=DONE")
    assert response.status_code == 422


# ============================================================
# GET / PUT /api/v1/tutorings/{id}
# ============================================================

def test_get_introuvable(client):
    with patch(f"{SERVICE}.get_tutoring", return_value=None):
        response = client.get(f"/api/v1/tutorings/{uuid.uuid4()}")
    assert response.status_code == 404


def test_get_id_invalide(client):
    response = client.get("/api/v1/tutorings/pas-un-uuid")
    assert response.status_code == 422


def test_update_succes(client):
    with patch(f"{SERVICE}.update_tutoring") as mock:
        mock.return_value = make_tutoring_response(type="WEAK_PERFORMANCE")
        response = client.put(f"/api/v1/tutorings/{uuid.uuid4()}", json={"type": "WEAK_PERFORMANCE"})

    assert response.status_code == 200
    assert response.json()["type"] == "WEAK_PERFORMANCE"


def test_update_introuvable(client):
    with patch(f"{SERVICE}.update_tutoring", return_value=None):
        response = client.put(f"/api/v1/tutorings/{uuid.uuid4()}", json={"note": "x"})
    assert response.status_code == 404


def test_update_null_sur_champ_obligatoire(client):
    with patch(f"{SERVICE}.update_tutoring") as mock:
        response = client.put(f"/api/v1/tutorings/{uuid.uuid4()}", json={"student_name": None})

    assert response.status_code == 422
    mock.assert_not_called()


# ============================================================
# Transitions
# ============================================================

def test_schedule_succes(client):
    tutoring_id = uuid.uuid4()
    with patch(f"{SERVICE}.schedule_tutoring") as mock:
        mock.return_value = make_result("SCHEDULED")
        response = client.post(f"/api/v1/tutorings/{tutoring_id}/schedule", json={
            "date": "2026-03-09", "time": "18:30",
            "tutor_id": "gv-1", "tutor_name": "Thầy Minh", "actor_id": "staff-1",
        })

    assert response.status_code == 200
    assert response.json()["tutoring"]["status"] == "SCHEDULED"
    assert response.json()["warnings"] == []
    args = mock.call_args[0]
    assert args[1] == tutoring_id
    assert args[2] == date(2026, 3, 9)
    assert args[3:] == ("18:30", "gv-1", "Thầy Minh", "staff-1")


def test_schedule_heure_invalide(client):
    response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/schedule", json={
        "date": "2026-03-09", "time": "6h30",
        "tutor_id": "gv-1", "tutor_name": "Thầy Minh", "actor_id": "staff-1",
    })
    assert response.status_code == 422


def test_complete_avec_avertissement(client):
    warning = SyncWarning(kind="ATTENDANCE_SYNC_FAILED", message="Présence non mise à jour")
    with patch(f"{SERVICE}.complete_tutoring", return_value=make_result("COMPLETED", [warning])):
        response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/complete", json={"actor_id": "staff-1"})

    assert response.status_code == 200
    assert response.json()["tutoring"]["status"] == "COMPLETED"
    assert response.json()["warnings"][0]["kind"] == "ATTENDANCE_SYNC_FAILED"


def test_complete_introuvable(client):
    with patch(f"{SERVICE}.complete_tutoring", side_effect=NotFoundError("Bồi bài introuvable.")):
        response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/complete", json={"actor_id": "staff-1"})

    assert response.status_code == 404
    assert "introuvable" in response.json()["detail"]


def test_charged_absence_sans_motif(client):
    with patch(f"{SERVICE}.mark_charged_absence", side_effect=InvalidArgumentError("Motif obligatoire.")):
        response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/charged-absence", json={"actor_id": "staff-1"})

    assert response.status_code == 400


def test_charged_absence_motif_transmis(client):
    with patch(f"{SERVICE}.mark_charged_absence", return_value=make_result("CHARGED_ABSENCE")) as mock:
        response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/charged-absence", json={
            "actor_id": "staff-1", "reason": "Phụ huynh không đưa đi",
        })

    assert response.status_code == 200
    assert mock.call_args[0][3] == "Phụ huynh không đưa đi"


def test_reserved_absence(client):
    with patch(f"{SERVICE}.mark_reserved_absence", return_value=make_result("RESERVED_ABSENCE")):
        response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/reserved-absence", json={"actor_id": "staff-1"})

    assert response.status_code == 200
    assert response.json()["tutoring"]["status"] == "RESERVED_ABSENCE"


def test_undo_transition_illegale(client):
    with patch(f"{SERVICE}.undo_tutoring", side_effect=IllegalTransitionError("statut actuel : SCHEDULED")):
        response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/undo", json={"actor_id": "staff-1"})

    assert response.status_code == 409
    assert "SCHEDULED" in response.json()["detail"]


def test_undo_sans_acteur(client):
    response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/undo", json={})
    assert response.status_code == 422


def test_cancel_corps_optionnel(client):
    with patch(f"{SERVICE}.cancel_tutoring", return_value=make_result("CANCELLED")) as mock:
        response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/cancel", json={})

    assert response.status_code == 200
    assert mock.call_args[0][2:] == (None, None)


# ============================================================
# Corbeille
# ============================================================

def test_delete_succes(client):
    with patch(f"{SERVICE}.soft_delete_tutoring") as mock:
        response = client.delete(f"/api/v1/tutorings/{uuid.uuid4()}?actor_id=staff-1")

    assert response.status_code == 204
    assert mock.call_args[0][2] == "staff-1"


def test_delete_sans_acteur(client):
    response = client.delete(f"/api/v1/tutorings/{uuid.uuid4()}")
    assert response.status_code == 422


def test_delete_deja_supprime(client):
    with patch(f"{SERVICE}.soft_delete_tutoring", side_effect=IllegalTransitionError("déjà supprimé")):
        response = client.delete(f"/api/v1/tutorings/{uuid.uuid4()}?actor_id=staff-1")
    assert response.status_code == 409


def test_restore_succes(client):
    with patch(f"{SERVICE}.restore_tutoring", return_value=make_tutoring_response()):
        response = client.post(f"/api/v1/tutorings/{uuid.uuid4()}/restore")

    assert response.status_code == 200
    assert response.json()["deleted_at"] is None


# ============================================================
# POST /api/v1/tutorings/attendance-links/backfill
# ============================================================

def test_backfill_dry_run(client):
    report = AttendanceLinkReport(total=4, already_linked=1, updated=1, missing_fields=1, not_found=1, dry_run=True)
    with patch(f"{SERVICE}.link_missing_attendances", return_value=report) as mock:
        response = client.post("/api/v1/tutorings/attendance-links/backfill?dry_run=true")

    assert response.status_code == 200
    assert response.json()["updated"] == 1
    assert mock.call_args.kwargs["dry_run"] is True


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
