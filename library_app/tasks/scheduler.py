# library_app/tasks/scheduler.py
from __future__ import annotations

import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger


def start_scheduler(app):
    """
    Runs the overdue sweep every OVERDUE_SCAN_MINUTES.
    - Skipped when SCHEDULER_ENABLED is off (tests, one-off CLI runs).
    - Under the debug reloader only the real (WERKZEUG_RUN_MAIN) process starts it.
    - Shut down at interpreter exit.
    """
    if not app.config.get("SCHEDULER_ENABLED", True):
        app.logger.info("[scheduler] disabled by config.")
        return None

    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    from library_app.tasks.overdue_scan import run_overdue_scan

    minutes = int(app.config.get("OVERDUE_SCAN_MINUTES", 10))
    scheduler = BackgroundScheduler(timezone="UTC")

    def _job_wrapper():
        try:
            run_overdue_scan(app)
        except Exception as ex:
            # keep the scheduler alive; the next tick retries
            app.logger.exception(f"[scheduler] overdue_scan error: {ex}")

    scheduler.add_job(
        func=_job_wrapper,
        trigger=IntervalTrigger(minutes=minutes),
        id="overdue_scan_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=120,
    )

    scheduler.start()
    app.logger.info(f"[scheduler] Overdue scan started (every {minutes} minutes).")

    app.extensions["apscheduler"] = scheduler

    import atexit
    atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)
    return scheduler
