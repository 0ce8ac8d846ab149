"""
Router pour la situation financière des élèves.
Statut (sortie / retour), nợ xấu et tất toán.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tutorcenter.database import get_db
from tutorcenter.schemas.student import (
    BadDebtReconcileResult,
    SettlementCheckResult,
    SettlementRequest,
    SettlementResponse,
    StudentResponse,
    StudentStatusUpdate,
)
from tutorcenter.services import bad_debt_service

router = APIRouter(prefix="/api/v1/students", tags=["Élèves"])


@router.get(
    "/{student_id}/settlement-status",
    response_model=SettlementCheckResult,
    summary="Factures de tất toán de l'élève",
)
def get_settlement_status(student_id: uuid.UUID, db: Session = Depends(get_db)):
    """Indique si l'élève a une facture BAD_DEBT (prioritaire) ou PAID."""
    return bad_debt_service.check_settlement_status(db, student_id)


@router.post(
    "/{student_id}/bad-debt/reconcile",
    response_model=BadDebtReconcileResult,
    summary="Rapprocher le nợ xấu",
)
def reconcile_bad_debt(student_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Recalcule le drapeau nợ xấu à partir des séances consommées / payées
    et des factures de tất toán existantes.
    """
    return bad_debt_service.reconcile_bad_debt(db, student_id)


@router.patch("/{student_id}/status", response_model=StudentResponse, summary="Changer le statut d'un élève")
def change_status(student_id: uuid.UUID, data: StudentStatusUpdate, db: Session = Depends(get_db)):
    """
    Passage à "Nghỉ học" : rapprochement nợ xấu automatique.
    Retour à "Đang học" : le nợ xấu éventuel est effacé.
    """
    return bad_debt_service.change_student_status(db, student_id, data.status)


@router.post(
    "/{student_id}/settlement",
    response_model=SettlementResponse,
    status_code=201,
    summary="Tất toán d'un élève",
)
def settle_student(student_id: uuid.UUID, data: SettlementRequest, db: Session = Depends(get_db)):
    """
    Clôture financière : crée la facture (PAID ou BAD_DEBT), sort l'élève de sa classe
    et met à jour ses champs nợ xấu.
    """
    return bad_debt_service.settle_student(db, student_id, data)
