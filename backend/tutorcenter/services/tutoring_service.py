"""
Service métier pour les bồi bài (séances de rattrapage).

Chaque transition suit le même déroulé :
1. Charger la ligne avec SELECT ... FOR UPDATE (NotFoundError si absente)
2. Demander le statut d'arrivée à tutoring_state (table centrale)
3. Écrire statut + historique complété dans UN SEUL commit
4. Synchroniser ensuite la présence / la date de fin (best-effort) :
   un échec n'annule jamais le commit principal, il devient un SyncWarning
   et est mémorisé dans last_sync_error.
"""

import uuid
import datetime as dt
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorcenter.config import settings
from tutorcenter.exceptions import IllegalTransitionError, InvalidArgumentError, NotFoundError
from tutorcenter.models.student_attendance import AttendanceStatus
from tutorcenter.models.tutoring import Tutoring, TutoringStatus
from tutorcenter.schemas.tutoring import (
    AttendanceLinkReport,
    SyncWarning,
    TutoringActionResult,
    TutoringCreate,
    TutoringFilters,
    TutoringResponse,
    TutoringUpdate,
)
from tutorcenter.services import attendance_link, course_extension
from tutorcenter.services.tutoring_state import TutoringAction, build_history_entry, next_status

logger = logging.getLogger(__name__)

ATTENDANCE_SYNC_FAILED = "ATTENDANCE_SYNC_FAILED"
COURSE_EXTENSION_FAILED = "COURSE_EXTENSION_FAILED"
COURSE_EXTENSION_NOT_REVERTED = "COURSE_EXTENSION_NOT_REVERTED"


# ----------------------------------------------------------------
# CRUD
# ----------------------------------------------------------------

def create_tutoring(
    db: Session,
    data: TutoringCreate,
    created_by: Optional[str] = None,
) -> TutoringResponse:
    """
    Crée un bồi bài en NOT_SCHEDULED (ou dans le statut initial fourni).
    L'historique est amorcé avec une entrée "Created".
    """
    if data.student_id is None or data.class_id is None:
        raise InvalidArgumentError("student_id et class_id sont obligatoires.")

    status = data.status or TutoringStatus.NOT_SCHEDULED
    now = _now()

    tutoring = Tutoring(
        id=uuid.uuid4(),
        student_id=data.student_id,
        student_name=data.student_name,
        class_id=data.class_id,
        class_name=data.class_name,
        type=data.type.value,
        status=status.value,
        absent_date=data.absent_date,
        student_attendance_id=data.student_attendance_id,
        note=data.note,
        deleted_at=None,
        status_history=[
            build_history_entry(status, now, created_by or settings.DEFAULT_ACTOR_ID, "Created")
        ],
        created_at=now,
        updated_at=now,
    )
    db.add(tutoring)
    db.commit()
    db.refresh(tutoring)

    logger.info(
        "Bồi bài créé : %s (élève %s, classe %s, %s)",
        tutoring.id, data.student_id, data.class_id, status.value,
    )
    return _to_response(tutoring)


def get_tutoring(db: Session, tutoring_id: uuid.UUID) -> Optional[TutoringResponse]:
    """Retourne un bồi bài par son ID (supprimé ou non), ou None s'il n'existe pas."""
    tutoring = db.get(Tutoring, tutoring_id)
    if tutoring is None:
        return None
    return _to_response(tutoring)


def list_tutorings(db: Session, filters: Optional[TutoringFilters] = None) -> List[TutoringResponse]:
    """
    Liste les bồi bài, du plus récent au plus ancien (created_at).
    Par défaut les enregistrements supprimés sont exclus ;
    only_deleted=True ne retourne QUE les supprimés (prioritaire sur include_deleted).
    """
    filters = filters or TutoringFilters()
    stmt = select(Tutoring)

    if filters.type is not None:
        stmt = stmt.where(Tutoring.type == filters.type.value)
    if filters.status is not None:
        stmt = stmt.where(Tutoring.status == filters.status.value)
    if filters.student_id is not None:
        stmt = stmt.where(Tutoring.student_id == filters.student_id)
    if filters.class_id is not None:
        stmt = stmt.where(Tutoring.class_id == filters.class_id)

    if filters.only_deleted:
        stmt = stmt.where(Tutoring.deleted_at.is_not(None))
    elif not filters.include_deleted:
        stmt = stmt.where(Tutoring.deleted_at.is_(None))

    tutorings = db.execute(stmt.order_by(Tutoring.created_at.desc())).scalars().all()
    return [_to_response(t) for t in tutorings]


def update_tutoring(
    db: Session,
    tutoring_id: uuid.UUID,
    data: TutoringUpdate,
) -> Optional[TutoringResponse]:
    """
    Met à jour les champs descriptifs fournis.
    Le statut, l'historique, la clôture et la suppression ne passent pas par ici.
    """
    tutoring = db.get(Tutoring, tutoring_id)
    if tutoring is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if field == "type" and value is not None:
            value = value.value
        setattr(tutoring, field, value)
    tutoring.updated_at = _now()

    db.commit()
    db.refresh(tutoring)
    return _to_response(tutoring)


# ----------------------------------------------------------------
# Transitions de statut
# ----------------------------------------------------------------

def schedule_tutoring(
    db: Session,
    tutoring_id: uuid.UUID,
    date: dt.date,
    time: str,
    tutor_id: str,
    tutor_name: str,
    actor_id: str,
) -> TutoringActionResult:
    """Fixe le rendez-vous (→ SCHEDULED). Aucun effet sur la présence."""
    tutoring = _load_for_update(db, tutoring_id)
    _apply_transition(tutoring, TutoringAction.SCHEDULE, actor_id)

    tutoring.scheduled_date = date
    tutoring.scheduled_time = time
    tutoring.tutor_id = tutor_id
    tutoring.tutor_name = tutor_name
    db.commit()

    logger.info("Bồi bài %s planifié le %s à %s (%s)", tutoring_id, date, time, tutor_name)
    return _result(db, tutoring)


def complete_tutoring(
    db: Session,
    tutoring_id: uuid.UUID,
    actor_id: str,
    note: Optional[str] = None,
) -> TutoringActionResult:
    """Marque le bồi bài comme effectué (→ COMPLETED) ; la présence passe à TUTORED."""
    tutoring = _load_for_update(db, tutoring_id)
    _, now = _apply_transition(tutoring, TutoringAction.COMPLETE, actor_id)

    tutoring.completed_at = now
    tutoring.completed_by = actor_id
    if note:
        tutoring.note = note
    db.commit()

    logger.info("Bồi bài %s effectué (par %s)", tutoring_id, actor_id)
    warnings = _sync_attendance(db, tutoring, AttendanceStatus.TUTORED)
    return _result(db, tutoring, warnings)


def mark_charged_absence(
    db: Session,
    tutoring_id: uuid.UUID,
    actor_id: str,
    reason: str,
) -> TutoringActionResult:
    """
    Nghỉ tính phí : l'élève refuse le rattrapage, la séance reste due (→ CHARGED_ABSENCE).
    Le motif est obligatoire. La présence reste ABSENT.
    """
    if not reason or not reason.strip():
        raise InvalidArgumentError("Le motif du Nghỉ tính phí est obligatoire.")
    reason = reason.strip()

    tutoring = _load_for_update(db, tutoring_id)
    _, now = _apply_transition(tutoring, TutoringAction.MARK_CHARGED_ABSENCE, actor_id, reason)

    tutoring.charged_reason = reason
    tutoring.completed_at = now
    tutoring.completed_by = actor_id
    db.commit()

    logger.info("Bồi bài %s : Nghỉ tính phí (%s)", tutoring_id, reason)
    return _result(db, tutoring)


def mark_reserved_absence(
    db: Session,
    tutoring_id: uuid.UUID,
    actor_id: str,
    note: Optional[str] = None,
) -> TutoringActionResult:
    """
    Nghỉ bảo lưu : absence excusée, non facturée (→ RESERVED_ABSENCE).
    La présence passe à RESERVED et la date de fin du cours recule d'une séance.
    """
    tutoring = _load_for_update(db, tutoring_id)
    _, now = _apply_transition(tutoring, TutoringAction.MARK_RESERVED_ABSENCE, actor_id, note)

    tutoring.completed_at = now
    tutoring.completed_by = actor_id
    if note:
        tutoring.note = note
    db.commit()

    logger.info("Bồi bài %s : Nghỉ bảo lưu (par %s)", tutoring_id, actor_id)
    warnings = _sync_attendance(db, tutoring, AttendanceStatus.RESERVED)
    warnings += _extend_course(db, tutoring)
    return _result(db, tutoring, warnings)


def undo_tutoring(db: Session, tutoring_id: uuid.UUID, actor_id: str) -> TutoringActionResult:
    """
    Annule une clôture (COMPLETED, CHARGED_ABSENCE, RESERVED_ABSENCE → SCHEDULED).

    La présence revient à ABSENT si elle avait été modifiée.
    La prolongation accordée par un Nghỉ bảo lưu n'est PAS retirée : le delta n'est
    pas conservé, un avertissement COURSE_EXTENSION_NOT_REVERTED est renvoyé pour
    correction manuelle de la date de fin.
    """
    tutoring = _load_for_update(db, tutoring_id)
    previous, _ = _apply_transition(tutoring, TutoringAction.UNDO, actor_id, f"Undone from {tutoring.status}")
    previous = TutoringStatus(previous)

    tutoring.completed_at = None
    tutoring.completed_by = None
    tutoring.charged_reason = None
    db.commit()

    logger.info("Bồi bài %s : retour à SCHEDULED depuis %s (par %s)", tutoring_id, previous, actor_id)

    warnings: List[SyncWarning] = []
    if previous in (TutoringStatus.COMPLETED, TutoringStatus.RESERVED_ABSENCE):
        warnings += _sync_attendance(db, tutoring, AttendanceStatus.ABSENT)

    if previous == TutoringStatus.RESERVED_ABSENCE:
        message = (
            f"Date de fin prévue de l'élève {tutoring.student_id} non rétablie "
            "après annulation d'un Nghỉ bảo lưu : à corriger manuellement."
        )
        logger.warning("Bồi bài %s : %s", tutoring_id, message)
        warnings.append(SyncWarning(kind=COURSE_EXTENSION_NOT_REVERTED, message=message))

    return _result(db, tutoring, warnings)


def cancel_tutoring(
    db: Session,
    tutoring_id: uuid.UUID,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> TutoringActionResult:
    """Annule le bồi bài (→ CANCELLED) depuis n'importe quel statut. Le motif devient la note."""
    actor_id = actor_id or settings.DEFAULT_ACTOR_ID
    tutoring = _load_for_update(db, tutoring_id)
    _apply_transition(tutoring, TutoringAction.CANCEL, actor_id, reason)

    tutoring.note = reason
    tutoring.charged_reason = None
    tutoring.completed_at = None
    tutoring.completed_by = None
    db.commit()

    logger.info("Bồi bài %s annulé (par %s)", tutoring_id, actor_id)
    return _result(db, tutoring)


def soft_delete_tutoring(db: Session, tutoring_id: uuid.UUID, actor_id: str) -> TutoringResponse:
    """Suppression logique : deleted_at/deleted_by renseignés, statut inchangé."""
    tutoring = _load_for_update(db, tutoring_id)
    if tutoring.deleted_at is not None:
        raise IllegalTransitionError(f"Le bồi bài {tutoring_id} est déjà supprimé.")

    now = _now()
    tutoring.deleted_at = now
    tutoring.deleted_by = actor_id
    tutoring.updated_at = now
    db.commit()
    db.refresh(tutoring)

    logger.info("Bồi bài %s supprimé (par %s)", tutoring_id, actor_id)
    return _to_response(tutoring)


def restore_tutoring(db: Session, tutoring_id: uuid.UUID) -> TutoringResponse:
    """Restaure un bồi bài supprimé logiquement."""
    tutoring = _load_for_update(db, tutoring_id)
    if tutoring.deleted_at is None:
        raise IllegalTransitionError(f"Le bồi bài {tutoring_id} n'est pas supprimé.")

    tutoring.deleted_at = None
    tutoring.deleted_by = None
    tutoring.updated_at = _now()
    db.commit()
    db.refresh(tutoring)

    logger.info("Bồi bài %s restauré", tutoring_id)
    return _to_response(tutoring)


# ----------------------------------------------------------------
# Rattrapage des liens vers les présences
# ----------------------------------------------------------------

def link_missing_attendances(db: Session, dry_run: bool = False) -> AttendanceLinkReport:
    """
    Renseigne student_attendance_id pour les bồi bài qui n'en ont pas encore,
    en cherchant la présence (student_id, class_id, absent_date).
    En dry_run, rien n'est écrit : le rapport indique ce qui serait lié.
    """
    tutorings = db.execute(select(Tutoring)).scalars().all()

    already_linked = updated = missing_fields = not_found = 0
    for tutoring in tutorings:
        if tutoring.student_attendance_id:
            already_linked += 1
            continue

        if not (tutoring.student_id and tutoring.class_id and tutoring.absent_date):
            missing_fields += 1
            continue

        attendance_id = attendance_link.find_student_attendance(
            db, tutoring.student_id, tutoring.class_id, tutoring.absent_date
        )
        if attendance_id is None:
            logger.debug("Bồi bài %s : aucune présence le %s", tutoring.id, tutoring.absent_date)
            not_found += 1
            continue

        if not dry_run:
            tutoring.student_attendance_id = attendance_id
        updated += 1

    if not dry_run and updated:
        db.commit()

    logger.info(
        "Liens bồi bài ↔ présence%s : %d au total, %d déjà liés, %d liés, %d incomplets, %d sans présence",
        " (dry run)" if dry_run else "",
        len(tutorings), already_linked, updated, missing_fields, not_found,
    )
    return AttendanceLinkReport(
        total=len(tutorings),
        already_linked=already_linked,
        updated=updated,
        missing_fields=missing_fields,
        not_found=not_found,
        dry_run=dry_run,
    )


# ----------------------------------------------------------------
# Helpers internes
# ----------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(timezone.utc)


def _load_for_update(db: Session, tutoring_id: uuid.UUID) -> Tutoring:
    """Charge et verrouille la ligne jusqu'au commit (read-modify-write atomique)."""
    tutoring = (
        db.query(Tutoring)
        .filter(Tutoring.id == tutoring_id)
        .with_for_update()
        .first()
    )
    if tutoring is None:
        raise NotFoundError(f"Bồi bài {tutoring_id} introuvable.")
    return tutoring


def _apply_transition(
    tutoring: Tutoring,
    action: TutoringAction,
    actor_id: str,
    reason: Optional[str] = None,
) -> Tuple[str, datetime]:
    """
    Valide la transition puis écrit statut + historique sur l'objet (sans commit).
    Retourne (statut précédent, horodatage de la transition).
    Ne modifie rien si la transition est refusée.
    """
    if tutoring.deleted_at is not None:
        raise IllegalTransitionError(
            f"Le bồi bài {tutoring.id} est supprimé : restaurez-le avant de changer son statut."
        )

    previous = tutoring.status
    new_status = next_status(previous, action)
    now = _now()

    # Nouvelle liste : l'historique existant n'est jamais modifié en place
    tutoring.status_history = [
        *(tutoring.status_history or []),
        build_history_entry(new_status, now, actor_id, reason),
    ]
    tutoring.status = new_status.value
    tutoring.updated_at = now
    return previous, now


def _resolve_attendance_id(db: Session, tutoring: Tutoring) -> Optional[uuid.UUID]:
    """
    Lien direct d'abord ; sinon recherche par (élève, classe, date d'absence).
    Un ID trouvé par recherche est mémorisé sur le bồi bài (commit par l'appelant).
    """
    if tutoring.student_attendance_id:
        return tutoring.student_attendance_id

    if not (tutoring.absent_date and tutoring.student_id and tutoring.class_id):
        return None

    attendance_id = attendance_link.find_student_attendance(
        db, tutoring.student_id, tutoring.class_id, tutoring.absent_date
    )
    if attendance_id is not None:
        tutoring.student_attendance_id = attendance_id
    return attendance_id


def _sync_attendance(db: Session, tutoring: Tutoring, status: AttendanceStatus) -> List[SyncWarning]:
    """Répercute le statut sur la présence liée. Un échec devient un SyncWarning."""
    try:
        attendance_id = _resolve_attendance_id(db, tutoring)
        if attendance_id is None:
            logger.info(
                "Bồi bài %s : aucune présence liée, statut %s non répercuté",
                tutoring.id, status.value,
            )
            return []

        attendance_link.set_attendance_status(db, attendance_id, status)
        tutoring.last_sync_error = None
        db.commit()
        return []
    except (SQLAlchemyError, ValueError) as exc:
        db.rollback()
        return [_record_sync_error(
            db, tutoring, ATTENDANCE_SYNC_FAILED,
            f"Présence non mise à jour ({status.value}) : {exc}",
        )]


def _extend_course(db: Session, tutoring: Tutoring) -> List[SyncWarning]:
    """Recule la date de fin du cours d'une séance. Un échec devient un SyncWarning."""
    try:
        course_extension.extend_student_course(db, tutoring.student_id, tutoring.class_id)
        tutoring.last_sync_error = None
        db.commit()
        return []
    except (SQLAlchemyError, ValueError) as exc:
        db.rollback()
        return [_record_sync_error(
            db, tutoring, COURSE_EXTENSION_FAILED,
            f"Date de fin non prolongée : {exc}",
        )]


def _record_sync_error(db: Session, tutoring: Tutoring, kind: str, message: str) -> SyncWarning:
    """Journalise l'échec, le mémorise dans last_sync_error et construit l'avertissement."""
    logger.warning("Bồi bài %s : %s", tutoring.id, message)
    try:
        tutoring.last_sync_error = message
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Bồi bài %s : impossible d'enregistrer last_sync_error : %s", tutoring.id, exc)
    return SyncWarning(kind=kind, message=message)


def _result(db: Session, tutoring: Tutoring, warnings: Optional[List[SyncWarning]] = None) -> TutoringActionResult:
    db.refresh(tutoring)
    return TutoringActionResult(tutoring=_to_response(tutoring), warnings=warnings or [])


def _to_response(tutoring: Tutoring) -> TutoringResponse:
    return TutoringResponse.model_validate(tutoring)
