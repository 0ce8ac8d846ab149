"""
Schémas Pydantic pour les élèves : statut, nợ xấu et tất toán.
"""

import uuid
import datetime as dt
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator

from tutorcenter.models.settlement_invoice import SettlementStatus


class BadDebtAction(str, Enum):
    KEEP_BAD_DEBT = "KEEP_BAD_DEBT"
    CLEAR_BAD_DEBT = "CLEAR_BAD_DEBT"
    AUTO_SET_BAD_DEBT = "AUTO_SET_BAD_DEBT"
    NO_ACTION = "NO_ACTION"


class SettlementCheckResult(BaseModel):
    """Factures de tất toán existantes pour un élève (BAD_DEBT prioritaire sur PAID)."""
    has_bad_debt_invoice: bool
    has_paid_invoice: bool
    paid_invoice_code: Optional[str] = None


class StudentResponse(BaseModel):
    """Vue élève centrée sur la situation financière."""
    id: uuid.UUID
    full_name: str
    status: Optional[str]
    class_id: Optional[uuid.UUID] = None
    class_ids: List[uuid.UUID] = []
    class_name: Optional[str] = None
    registered_sessions: int = 0
    attended_sessions: int = 0
    expected_end_date: Optional[dt.date] = None
    bad_debt: bool = False
    bad_debt_sessions: int = 0
    bad_debt_amount: int = 0
    bad_debt_date: Optional[datetime] = None
    bad_debt_note: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("class_ids", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []

    @field_validator("registered_sessions", "attended_sessions", "bad_debt_sessions", "bad_debt_amount", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        return v or 0

    @field_validator("bad_debt", mode="before")
    @classmethod
    def none_as_false(cls, v):
        return bool(v)


class BadDebtReconcileResult(BaseModel):
    """Résultat d'un rapprochement nợ xấu."""
    student_id: uuid.UUID
    action: BadDebtAction
    settlement: SettlementCheckResult
    applied_update: Dict[str, Any] = {}   # Vide si rien n'a été écrit


class StudentStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le statut ne peut pas être vide.")
        return v.strip()


class SettlementRequest(BaseModel):
    settlement_type: SettlementStatus
    note: Optional[str] = None
    price_per_session: Optional[int] = None   # Défaut : settings.PRICE_PER_SESSION
    actor_id: Optional[str] = None

    @field_validator("price_per_session")
    @classmethod
    def positive_price(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Le prix par séance doit être positif.")
        return v


class SettlementResponse(BaseModel):
    """Rapport de tất toán : facture créée + patch appliqué à l'élève."""
    student_id: uuid.UUID
    invoice_id: uuid.UUID
    invoice_code: str
    settlement_type: SettlementStatus
    debt_sessions: int
    price_per_session: int
    total_amount: int
    student: StudentResponse
