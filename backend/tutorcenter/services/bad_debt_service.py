"""
Service métier du nợ xấu et du tất toán.

- check_settlement_status : factures de tất toán existantes (BAD_DEBT d'abord, strict)
- reconcile_bad_debt      : applique la décision de settlement_helpers à l'élève
- change_student_status   : sortie (Nghỉ học) → rapprochement ; retour (Đang học) → effacement
- settle_student          : facture de tất toán + patch élève
"""

import random
import uuid
import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from tutorcenter.config import settings
from tutorcenter.exceptions import NotFoundError
from tutorcenter.models.settlement_invoice import SettlementInvoice, SettlementStatus
from tutorcenter.models.student import STUDENT_STATUS_ACTIVE, STUDENT_STATUS_WITHDRAWN, Student
from tutorcenter.schemas.student import (
    BadDebtAction,
    BadDebtReconcileResult,
    SettlementCheckResult,
    SettlementRequest,
    SettlementResponse,
    StudentResponse,
)
from tutorcenter.services.settlement_helpers import (
    calculate_debt_amount,
    calculate_debt_sessions,
    decide_bad_debt_action,
    prepare_bad_debt_update,
    prepare_clear_bad_debt_update,
    prepare_return_update,
    prepare_student_update,
    settled_note,
)

logger = logging.getLogger(__name__)


def find_invoice_by_student_and_status(
    db: Session,
    student_id: uuid.UUID,
    status: SettlementStatus,
) -> Optional[SettlementInvoice]:
    """Retourne une facture de tất toán de l'élève dans ce statut, ou None."""
    return db.execute(
        select(SettlementInvoice)
        .where(
            SettlementInvoice.student_id == student_id,
            SettlementInvoice.status == status.value,
        )
        .limit(1)
    ).scalar()


def check_settlement_status(db: Session, student_id: uuid.UUID) -> SettlementCheckResult:
    """
    Une facture BAD_DEBT, quelle qu'elle soit, court-circuite la recherche :
    les factures PAID ne sont alors même pas consultées.
    """
    if find_invoice_by_student_and_status(db, student_id, SettlementStatus.BAD_DEBT) is not None:
        return SettlementCheckResult(has_bad_debt_invoice=True, has_paid_invoice=False)

    paid = find_invoice_by_student_and_status(db, student_id, SettlementStatus.PAID)
    if paid is not None:
        return SettlementCheckResult(
            has_bad_debt_invoice=False,
            has_paid_invoice=True,
            paid_invoice_code=paid.invoice_code or "N/A",
        )

    return SettlementCheckResult(has_bad_debt_invoice=False, has_paid_invoice=False)


def reconcile_bad_debt(db: Session, student_id: uuid.UUID) -> BadDebtReconcileResult:
    """
    Rapproche le drapeau nợ xấu de l'élève avec ses compteurs et ses factures.

    KEEP_BAD_DEBT / NO_ACTION : rien n'est écrit.
    CLEAR_BAD_DEBT : remise à zéro, seulement si le drapeau n'est pas déjà à False.
    AUTO_SET_BAD_DEBT : nợ xấu calculé sur les séances consommées non payées.
    """
    student = _get_student(db, student_id)
    settlement = check_settlement_status(db, student_id)

    attended = student.attended_sessions or 0
    registered = student.registered_sessions or 0
    action = decide_bad_debt_action(attended, registered, settlement)

    update: dict = {}
    if action == BadDebtAction.CLEAR_BAD_DEBT and student.bad_debt is not False:
        update = prepare_clear_bad_debt_update(settled_note(settlement.paid_invoice_code))
    elif action == BadDebtAction.AUTO_SET_BAD_DEBT:
        update = prepare_bad_debt_update(
            calculate_debt_sessions(attended, registered),
            settings.PRICE_PER_SESSION,
        )

    if update:
        _apply(student, update)
        db.commit()

    logger.info(
        "Nợ xấu élève %s : %s (%d consommées / %d payées)%s",
        student_id, action.value, attended, registered, "" if update else ", aucun changement",
    )
    return BadDebtReconcileResult(
        student_id=student_id,
        action=action,
        settlement=settlement,
        applied_update=update,
    )


def change_student_status(db: Session, student_id: uuid.UUID, new_status: str) -> StudentResponse:
    """
    Change le statut d'un élève et applique les règles nợ xấu associées :
    - passage à "Nghỉ học" → reconcile_bad_debt
    - retour de "Nghỉ học" à "Đang học" avec un nợ xấu → effacement du nợ xấu
    """
    student = _get_student(db, student_id)
    previous = student.status
    student.status = new_status
    db.commit()

    if previous != new_status and new_status == STUDENT_STATUS_WITHDRAWN:
        reconcile_bad_debt(db, student_id)
    elif previous == STUDENT_STATUS_WITHDRAWN and new_status == STUDENT_STATUS_ACTIVE and student.bad_debt:
        _apply(student, prepare_return_update(date.today()))
        db.commit()
        logger.info("Élève %s revenu en cours : nợ xấu effacé", student_id)

    db.refresh(student)
    return StudentResponse.model_validate(student)


def settle_student(db: Session, student_id: uuid.UUID, data: SettlementRequest) -> SettlementResponse:
    """
    Tất toán d'un élève :
    1. calcule les séances dues et le montant (prix configurable)
    2. enregistre la facture de tất toán (PAID ou BAD_DEBT)
    3. applique prepare_student_update (sortie de classe + champs nợ xấu)
    Le tout dans un seul commit.
    """
    student = _get_student(db, student_id)

    attended = student.attended_sessions or 0
    registered = student.registered_sessions or 0
    price = data.price_per_session or settings.PRICE_PER_SESSION
    debt_sessions = calculate_debt_sessions(attended, registered)
    total_amount = calculate_debt_amount(debt_sessions, price)

    invoice = SettlementInvoice(
        id=uuid.uuid4(),
        invoice_code=generate_invoice_code(),
        student_id=student_id,
        status=data.settlement_type.value,
        registered_sessions=registered,
        attended_sessions=attended,
        debt_sessions=debt_sessions,
        price_per_session=price,
        total_amount=total_amount,
        note=data.note,
        created_by=data.actor_id or settings.DEFAULT_ACTOR_ID,
    )
    db.add(invoice)

    _apply(student, prepare_student_update(data.settlement_type, debt_sessions, total_amount, data.note))
    db.commit()
    db.refresh(student)

    logger.info(
        "Tất toán élève %s : %s, %d séance(s) due(s), %d VND (facture %s)",
        student_id, data.settlement_type.value, debt_sessions, total_amount, invoice.invoice_code,
    )
    return SettlementResponse(
        student_id=student_id,
        invoice_id=invoice.id,
        invoice_code=invoice.invoice_code,
        settlement_type=data.settlement_type,
        debt_sessions=debt_sessions,
        price_per_session=price,
        total_amount=total_amount,
        student=StudentResponse.model_validate(student),
    )


def generate_invoice_code(now: Optional[datetime] = None) -> str:
    """Code facture STL-YYYYMMDD-XXX."""
    now = now or datetime.now(timezone.utc)
    return f"STL-{now.strftime('%Y%m%d')}-{random.randint(0, 999):03d}"


def _get_student(db: Session, student_id: uuid.UUID) -> Student:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError(f"Élève {student_id} introuvable.")
    return student


def _apply(student: Student, update: dict) -> None:
    for field, value in update.items():
        setattr(student, field, value)
