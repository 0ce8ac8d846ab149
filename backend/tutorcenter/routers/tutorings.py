"""
Router pour les bồi bài (séances de rattrapage).
CRUD, transitions de statut, corbeille (suppression logique) et rattachement aux présences.

Les erreurs métier (NotFoundError, InvalidArgumentError, IllegalTransitionError)
sont traduites en 404 / 400 / 409 par les handlers de main.py.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tutorcenter.database import get_db
from tutorcenter.models.tutoring import TutoringStatus, TutoringType
from tutorcenter.schemas.tutoring import (
    AttendanceLinkReport,
    CancelRequest,
    ChargedAbsenceRequest,
    CompleteRequest,
    ReservedAbsenceRequest,
    ScheduleRequest,
    TutoringActionResult,
    TutoringCreate,
    TutoringFilters,
    TutoringResponse,
    TutoringUpdate,
    UndoRequest,
)
from tutorcenter.services import tutoring_service

router = APIRouter(prefix="/api/v1/tutorings", tags=["Bồi bài"])


@router.post("", response_model=TutoringResponse, status_code=201, summary="Créer un bồi bài")
def create_tutoring(
    data: TutoringCreate,
    actor_id: Optional[str] = Query(None, description="Auteur de la création (défaut : system)"),
    db: Session = Depends(get_db),
):
    """Crée un bồi bài en NOT_SCHEDULED (ou dans le statut initial fourni)."""
    return tutoring_service.create_tutoring(db, data, created_by=actor_id)


@router.get("", response_model=List[TutoringResponse], summary="Lister les bồi bài")
def list_tutorings(
    type: Optional[TutoringType] = None,
    status: Optional[TutoringStatus] = None,
    student_id: Optional[uuid.UUID] = None,
    class_id: Optional[uuid.UUID] = None,
    include_deleted: bool = False,
    only_deleted: bool = False,
    db: Session = Depends(get_db),
):
    """
    Retourne les bồi bài du plus récent au plus ancien.
    Les supprimés sont exclus sauf include_deleted=true ; only_deleted=true = corbeille.
    """
    filters = TutoringFilters(
        type=type,
        status=status,
        student_id=student_id,
        class_id=class_id,
        include_deleted=include_deleted,
        only_deleted=only_deleted,
    )
    return tutoring_service.list_tutorings(db, filters)


@router.post(
    "/attendance-links/backfill",
    response_model=AttendanceLinkReport,
    summary="Rattacher les bồi bài à leur présence",
)
def backfill_attendance_links(dry_run: bool = False, db: Session = Depends(get_db)):
    """
    Renseigne le lien vers la présence d'origine pour les bồi bài qui n'en ont pas.
    dry_run=true : rapport seul, aucune écriture.
    """
    return tutoring_service.link_missing_attendances(db, dry_run=dry_run)


@router.get("/{tutoring_id}", response_model=TutoringResponse, summary="Détail d'un bồi bài")
def get_tutoring(tutoring_id: uuid.UUID, db: Session = Depends(get_db)):
    tutoring = tutoring_service.get_tutoring(db, tutoring_id)
    if tutoring is None:
        raise HTTPException(status_code=404, detail="Bồi bài introuvable.")
    return tutoring


@router.put("/{tutoring_id}", response_model=TutoringResponse, summary="Modifier un bồi bài")
def update_tutoring(tutoring_id: uuid.UUID, data: TutoringUpdate, db: Session = Depends(get_db)):
    """Met à jour les champs descriptifs fournis. Le statut passe par les actions dédiées."""
    tutoring = tutoring_service.update_tutoring(db, tutoring_id, data)
    if tutoring is None:
        raise HTTPException(status_code=404, detail="Bồi bài introuvable.")
    return tutoring


@router.post("/{tutoring_id}/schedule", response_model=TutoringActionResult, summary="Planifier")
def schedule_tutoring(tutoring_id: uuid.UUID, data: ScheduleRequest, db: Session = Depends(get_db)):
    return tutoring_service.schedule_tutoring(
        db, tutoring_id, data.date, data.time, data.tutor_id, data.tutor_name, data.actor_id
    )


@router.post("/{tutoring_id}/complete", response_model=TutoringActionResult, summary="Marquer Đã bồi")
def complete_tutoring(tutoring_id: uuid.UUID, data: CompleteRequest, db: Session = Depends(get_db)):
    """Bồi bài effectué ; la présence d'origine passe à TUTORED si elle est trouvée."""
    return tutoring_service.complete_tutoring(db, tutoring_id, data.actor_id, data.note)


@router.post(
    "/{tutoring_id}/charged-absence",
    response_model=TutoringActionResult,
    summary="Marquer Nghỉ tính phí",
)
def mark_charged_absence(tutoring_id: uuid.UUID, data: ChargedAbsenceRequest, db: Session = Depends(get_db)):
    """L'élève refuse le rattrapage : séance facturée. Motif obligatoire (400 sinon)."""
    return tutoring_service.mark_charged_absence(db, tutoring_id, data.actor_id, data.reason)


@router.post(
    "/{tutoring_id}/reserved-absence",
    response_model=TutoringActionResult,
    summary="Marquer Nghỉ bảo lưu",
)
def mark_reserved_absence(tutoring_id: uuid.UUID, data: ReservedAbsenceRequest, db: Session = Depends(get_db)):
    """Absence excusée : présence → RESERVED et date de fin du cours prolongée d'une séance."""
    return tutoring_service.mark_reserved_absence(db, tutoring_id, data.actor_id, data.note)


@router.post("/{tutoring_id}/undo", response_model=TutoringActionResult, summary="Annuler la clôture")
def undo_tutoring(tutoring_id: uuid.UUID, data: UndoRequest, db: Session = Depends(get_db)):
    """
    Retour à SCHEDULED depuis un statut terminé (409 sinon).
    Depuis Nghỉ bảo lưu, la prolongation n'est pas retirée : voir warnings.
    """
    return tutoring_service.undo_tutoring(db, tutoring_id, data.actor_id)


@router.post("/{tutoring_id}/cancel", response_model=TutoringActionResult, summary="Annuler (Hủy)")
def cancel_tutoring(tutoring_id: uuid.UUID, data: CancelRequest, db: Session = Depends(get_db)):
    return tutoring_service.cancel_tutoring(db, tutoring_id, data.reason, data.actor_id)


@router.delete("/{tutoring_id}", status_code=204, summary="Supprimer (corbeille)")
def soft_delete_tutoring(
    tutoring_id: uuid.UUID,
    actor_id: str = Query(..., description="Auteur de la suppression"),
    db: Session = Depends(get_db),
):
    """Suppression logique : le bồi bài part en corbeille, son statut est conservé."""
    tutoring_service.soft_delete_tutoring(db, tutoring_id, actor_id)


@router.post("/{tutoring_id}/restore", response_model=TutoringResponse, summary="Restaurer depuis la corbeille")
def restore_tutoring(tutoring_id: uuid.UUID, db: Session = Depends(get_db)):
    return tutoring_service.restore_tutoring(db, tutoring_id)
