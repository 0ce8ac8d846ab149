"""
Fonctions pures du tất toán et du nợ xấu (aucun accès BDD).

Les patchs retournés sont les SEULS moyens autorisés de modifier les champs
bad_debt* d'un élève : tất toán, auto-détection et remise à zéro utilisent
tous le même jeu de champs.
"""

from datetime import date, datetime, timezone
from typing import Optional

from tutorcenter.models.settlement_invoice import SettlementStatus
from tutorcenter.models.student import STUDENT_STATUS_WITHDRAWN
from tutorcenter.schemas.student import BadDebtAction, SettlementCheckResult

DEFAULT_PRICE_PER_SESSION = 150000


def calculate_debt_sessions(attended_sessions: int, registered_sessions: int) -> int:
    """Séances consommées au-delà des séances payées (jamais négatif)."""
    return max(0, attended_sessions - registered_sessions)


def calculate_debt_amount(debt_sessions: int, price_per_session: int = DEFAULT_PRICE_PER_SESSION) -> int:
    return debt_sessions * price_per_session


def decide_bad_debt_action(
    attended_sessions: int,
    registered_sessions: int,
    settlement: SettlementCheckResult,
) -> BadDebtAction:
    """
    Décision nợ xấu, par ordre de priorité stricte :
    1. une facture BAD_DEBT existe → on garde le nợ xấu (même si une facture PAID existe aussi)
    2. une facture PAID existe → on efface le nợ xấu
    3. aucune facture et séances consommées > séances payées → nợ xấu automatique
    4. sinon rien
    """
    if settlement.has_bad_debt_invoice:
        return BadDebtAction.KEEP_BAD_DEBT
    if settlement.has_paid_invoice:
        return BadDebtAction.CLEAR_BAD_DEBT
    if attended_sessions > registered_sessions:
        return BadDebtAction.AUTO_SET_BAD_DEBT
    return BadDebtAction.NO_ACTION


def prepare_student_update(
    settlement_type: SettlementStatus,
    debt_sessions: int,
    total_amount: int,
    note: Optional[str] = None,
) -> dict:
    """
    Patch élève pour un tất toán.

    Toujours : statut "Nghỉ học" et sortie de classe.
    PAID : champs nợ xấu remis à zéro. BAD_DEBT : champs nợ xấu renseignés.
    Ne touche jamais registered_sessions.
    """
    update = {
        "status": STUDENT_STATUS_WITHDRAWN,
        "class_id": None,
        "class_ids": [],
        "class_name": None,
    }

    if settlement_type == SettlementStatus.PAID:
        update.update({
            "bad_debt": False,
            "bad_debt_sessions": 0,
            "bad_debt_amount": 0,
            "bad_debt_date": None,
            "bad_debt_note": None,
        })
    elif settlement_type == SettlementStatus.BAD_DEBT:
        update.update({
            "bad_debt": True,
            "bad_debt_sessions": debt_sessions,
            "bad_debt_amount": total_amount,
            "bad_debt_date": datetime.now(timezone.utc),
            "bad_debt_note": note or f"Nợ {debt_sessions} buổi - Tất toán",
        })

    return update


def prepare_bad_debt_update(debt_sessions: int, price_per_session: int = DEFAULT_PRICE_PER_SESSION) -> dict:
    """Patch nợ xấu automatique (élève sorti sans tất toán)."""
    return {
        "bad_debt": True,
        "bad_debt_sessions": debt_sessions,
        "bad_debt_amount": calculate_debt_amount(debt_sessions, price_per_session),
        "bad_debt_date": datetime.now(timezone.utc),
        "bad_debt_note": f"Nghỉ học khi còn nợ {debt_sessions} buổi",
    }


def prepare_clear_bad_debt_update(note: str) -> dict:
    """Patch de remise à zéro du nợ xấu, avec une note explicative."""
    return {
        "bad_debt": False,
        "bad_debt_sessions": 0,
        "bad_debt_amount": 0,
        "bad_debt_date": None,
        "bad_debt_note": note,
    }


def prepare_return_update(on: date) -> dict:
    """Patch de retour en cours : nợ xấu effacé, bad_debt_date conservée comme trace."""
    update = prepare_clear_bad_debt_update(returned_note(on))
    del update["bad_debt_date"]
    return update


def settled_note(invoice_code: str) -> str:
    return f"Đã tất toán - {invoice_code}"


def returned_note(on: date) -> str:
    return f"Đã quay lại học - {on.strftime('%d/%m/%Y')}"
