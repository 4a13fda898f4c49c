# realty/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .services import Services
from .utils import env_int, logger

RECONCILE_INTERVAL_MINUTES = env_int("RECONCILE_INTERVAL_MINUTES", 60)
RATING_INTERVAL_MINUTES = env_int("RATING_INTERVAL_MINUTES", 30)


def build_scheduler(services: Services) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(services.reconciliation.run, 'interval', minutes=RECONCILE_INTERVAL_MINUTES,
                      id="reconcile-listing-counts", max_instances=1, coalesce=True)
    scheduler.add_job(services.ratings.run, 'interval', minutes=RATING_INTERVAL_MINUTES,
                      id="recalculate-agent-ratings", max_instances=1, coalesce=True)
    return scheduler


def start_scheduler(services: Services) -> BackgroundScheduler:
    scheduler = build_scheduler(services)
    scheduler.start()
    logger.info("Scheduler started (reconcile every %sm, ratings every %sm)",
                RECONCILE_INTERVAL_MINUTES, RATING_INTERVAL_MINUTES)
    return scheduler
