"""
Machine à états des bồi bài.

Toute la légalité des transitions est décidée ici, dans une seule table :
le service ne fait que demander next_status(statut courant, action).

    NOT_SCHEDULED ──► SCHEDULED ──► COMPLETED / CHARGED_ABSENCE / RESERVED_ABSENCE
          │               ▲                      │
          │               └──────── UNDO ────────┘
          └──────── CANCEL (depuis n'importe quel statut) ──► CANCELLED
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from tutorcenter.exceptions import IllegalTransitionError
from tutorcenter.models.tutoring import TutoringStatus


class TutoringAction(str, Enum):
    SCHEDULE = "SCHEDULE"
    COMPLETE = "COMPLETE"
    MARK_CHARGED_ABSENCE = "MARK_CHARGED_ABSENCE"
    MARK_RESERVED_ABSENCE = "MARK_RESERVED_ABSENCE"
    UNDO = "UNDO"
    CANCEL = "CANCEL"


# Statuts terminaux : seuls statuts depuis lesquels UNDO est permis
TERMINAL_STATUSES: FrozenSet[TutoringStatus] = frozenset({
    TutoringStatus.COMPLETED,
    TutoringStatus.CHARGED_ABSENCE,
    TutoringStatus.RESERVED_ABSENCE,
})

# Statuts autorisés à la création (les terminaux exigent des champs de clôture)
INITIAL_STATUSES: FrozenSet[TutoringStatus] = frozenset({
    TutoringStatus.NOT_SCHEDULED,
    TutoringStatus.SCHEDULED,
    TutoringStatus.CANCELLED,
})

_OPEN: FrozenSet[TutoringStatus] = frozenset({
    TutoringStatus.NOT_SCHEDULED,
    TutoringStatus.SCHEDULED,
})

# action → (statuts de départ autorisés, statut d'arrivée)
TRANSITIONS: Dict[TutoringAction, Tuple[FrozenSet[TutoringStatus], TutoringStatus]] = {
    TutoringAction.SCHEDULE: (_OPEN | {TutoringStatus.CANCELLED}, TutoringStatus.SCHEDULED),
    TutoringAction.COMPLETE: (_OPEN, TutoringStatus.COMPLETED),
    TutoringAction.MARK_CHARGED_ABSENCE: (_OPEN, TutoringStatus.CHARGED_ABSENCE),
    TutoringAction.MARK_RESERVED_ABSENCE: (_OPEN, TutoringStatus.RESERVED_ABSENCE),
    TutoringAction.UNDO: (TERMINAL_STATUSES, TutoringStatus.SCHEDULED),
    TutoringAction.CANCEL: (frozenset(TutoringStatus), TutoringStatus.CANCELLED),
}


def next_status(current: str, action: TutoringAction) -> TutoringStatus:
    """
    Retourne le statut d'arrivée pour (statut courant, action).
    Lève IllegalTransitionError si la transition n'est pas dans la table.
    """
    try:
        current_status = TutoringStatus(current)
    except ValueError:
        raise IllegalTransitionError(f"Statut inconnu : {current!r}.")

    allowed_from, target = TRANSITIONS[action]
    if current_status not in allowed_from:
        if action == TutoringAction.UNDO:
            raise IllegalTransitionError(
                "Annulation possible uniquement depuis un statut terminé "
                f"(statut actuel : {current_status.value})."
            )
        raise IllegalTransitionError(
            f"Action {action.value} impossible depuis le statut {current_status.value}."
        )
    return target


def is_terminal(status: str) -> bool:
    return status in {s.value for s in TERMINAL_STATUSES}


def build_history_entry(
    status: TutoringStatus,
    changed_at: datetime,
    changed_by: str,
    reason: Optional[str] = None,
) -> dict:
    """Entrée d'historique, dérivée uniquement de ses arguments."""
    entry = {
        "status": status.value,
        "changed_at": changed_at.isoformat(),
        "changed_by": changed_by,
    }
    if reason is not None:
        entry["reason"] = reason
    return entry
