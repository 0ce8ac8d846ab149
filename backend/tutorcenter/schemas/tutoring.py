"""
Schémas Pydantic pour les bồi bài (séances de rattrapage).

Note : on importe datetime en tant que module (dt) pour éviter le conflit de nommage
entre les champs de type date et le type `datetime.date` dans Pydantic v2.
"""

import re
import uuid
import datetime as dt
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from tutorcenter.models.tutoring import TutoringStatus, TutoringType
from tutorcenter.services.tutoring_state import INITIAL_STATUSES

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class StatusHistoryEntry(BaseModel):
    """Une entrée du journal d'audit (append-only)."""
    status: TutoringStatus
    changed_at: datetime
    changed_by: str
    reason: Optional[str] = None


class TutoringCreate(BaseModel):
    student_id: uuid.UUID
    student_name: str
    class_id: uuid.UUID
    class_name: str
    type: TutoringType
    status: Optional[TutoringStatus] = None   # NOT_SCHEDULED si absent
    absent_date: Optional[dt.date] = None
    student_attendance_id: Optional[uuid.UUID] = None
    note: Optional[str] = None

    @field_validator("student_name", "class_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()

    @field_validator("status")
    @classmethod
    def initial_status_allowed(cls, v: Optional[TutoringStatus]) -> Optional[TutoringStatus]:
        if v is not None and v not in INITIAL_STATUSES:
            raise ValueError(
                f"Statut initial invalide. Valeurs acceptées : {sorted(s.value for s in INITIAL_STATUSES)}"
            )
        return v


class TutoringUpdate(BaseModel):
    """Champs descriptifs uniquement : le statut passe par les actions dédiées."""
    student_name: Optional[str] = None
    class_name: Optional[str] = None
    type: Optional[TutoringType] = None
    absent_date: Optional[dt.date] = None
    student_attendance_id: Optional[uuid.UUID] = None
    scheduled_date: Optional[dt.date] = None
    scheduled_time: Optional[str] = None
    tutor_id: Optional[str] = None
    tutor_name: Optional[str] = None
    note: Optional[str] = None

    # Colonnes NOT NULL : un null explicite est refusé, l'omission laisse la valeur en place
    @field_validator("student_name", "class_name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> str:
        if v is None or not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()

    @field_validator("type")
    @classmethod
    def type_not_null(cls, v: Optional[TutoringType]) -> TutoringType:
        if v is None:
            raise ValueError("Le type ne peut pas être null.")
        return v

    @field_validator("scheduled_time")
    @classmethod
    def valid_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _TIME_RE.match(v):
            raise ValueError("Heure invalide, format attendu HH:MM.")
        return v


class TutoringFilters(BaseModel):
    type: Optional[TutoringType] = None
    status: Optional[TutoringStatus] = None
    student_id: Optional[uuid.UUID] = None
    class_id: Optional[uuid.UUID] = None
    include_deleted: bool = False
    only_deleted: bool = False       # Prioritaire sur include_deleted (vue corbeille)


class ScheduleRequest(BaseModel):
    date: dt.date
    time: str
    tutor_id: str
    tutor_name: str
    actor_id: str

    @field_validator("time")
    @classmethod
    def valid_time(cls, v: str) -> str:
        if not _TIME_RE.match(v):
            raise ValueError("Heure invalide, format attendu HH:MM.")
        return v


class CompleteRequest(BaseModel):
    actor_id: str
    note: Optional[str] = None


class ChargedAbsenceRequest(BaseModel):
    actor_id: str
    reason: str = ""    # Vérifié par le service (InvalidArgumentError → 400)


class ReservedAbsenceRequest(BaseModel):
    actor_id: str
    note: Optional[str] = None


class UndoRequest(BaseModel):
    actor_id: str


class CancelRequest(BaseModel):
    reason: Optional[str] = None
    actor_id: Optional[str] = None


class TutoringResponse(BaseModel):
    id: uuid.UUID
    student_id: uuid.UUID
    student_name: str
    class_id: uuid.UUID
    class_name: str
    type: TutoringType
    status: TutoringStatus
    absent_date: Optional[dt.date] = None
    student_attendance_id: Optional[uuid.UUID] = None
    scheduled_date: Optional[dt.date] = None
    scheduled_time: Optional[str] = None
    tutor_id: Optional[str] = None
    tutor_name: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    charged_reason: Optional[str] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    status_history: List[StatusHistoryEntry] = []
    note: Optional[str] = None
    last_sync_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SyncWarning(BaseModel):
    """
    Effet de bord non abouti après le commit principal.
    Le statut du bồi bài reste valide ; l'appelant peut relancer la synchro.
    """
    kind: str        # ATTENDANCE_SYNC_FAILED, COURSE_EXTENSION_FAILED, COURSE_EXTENSION_NOT_REVERTED
    message: str


class TutoringActionResult(BaseModel):
    """Résultat d'une transition : l'enregistrement à jour + avertissements éventuels."""
    tutoring: TutoringResponse
    warnings: List[SyncWarning] = []


class AttendanceLinkReport(BaseModel):
    """Rapport du rattachement automatique bồi bài ↔ présence."""
    total: int
    already_linked: int
    updated: int
    missing_fields: int
    not_found: int
    dry_run: bool = False
