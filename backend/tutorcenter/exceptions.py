"""
Erreurs métier levées par les services.

Elles héritent de ValueError : les appelants historiques qui interceptent
ValueError continuent de fonctionner, et main.py les traduit en codes HTTP.
"""


class TutorCenterError(ValueError):
    """Erreur métier générique."""

    status_code = 400


class NotFoundError(TutorCenterError):
    """L'enregistrement ciblé (bồi bài, présence, élève) n'existe pas."""

    status_code = 404


class InvalidArgumentError(TutorCenterError):
    """Argument refusé avant toute tentative (ex. motif vide)."""

    status_code = 400


class IllegalTransitionError(TutorCenterError):
    """Changement de statut interdit depuis le statut courant."""

    status_code = 409
