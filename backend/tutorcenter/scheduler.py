"""
Planificateur APScheduler : rattachement périodique des bồi bài à leur présence d'origine.

Les bồi bài créés sans student_attendance_id (présence saisie après coup, import…)
sont reliés à la présence (élève, classe, date d'absence) dès qu'elle existe,
pour que les transitions suivantes puissent la mettre à jour directement.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from tutorcenter.config import settings
from tutorcenter.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _link_attendances_scheduled() -> None:
    """
    Tâche planifiée : rattache les bồi bài sans lien vers leur présence.
    Import local pour éviter les imports circulaires.
    """
    from tutorcenter.services.tutoring_service import link_missing_attendances

    db = SessionLocal()
    try:
        report = link_missing_attendances(db)
        logger.info(
            "Rattachement automatique : %d lié(s), %d sans présence, %d incomplet(s)",
            report.updated, report.not_found, report.missing_fields,
        )
    except Exception as exc:
        db.rollback()
        logger.error("Erreur lors du rattachement automatique bồi bài ↔ présence : %s", exc)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler désactivé (SCHEDULER_ENABLED=false).")
        return

    scheduler.add_job(
        _link_attendances_scheduled,
        trigger="interval",
        hours=settings.ATTENDANCE_LINK_BACKFILL_HOURS,
        id="tutoring_attendance_link",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré : rattachement bồi bài ↔ présence toutes les %d heure(s).",
        settings.ATTENDANCE_LINK_BACKFILL_HOURS,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
