from apscheduler.schedulers.background import BackgroundScheduler
import atexit
from datetime import datetime
from salon_booking.extensions import db
from salon_booking.services.scheduling.orchestrator import BookingOrchestrator

scheduler = BackgroundScheduler()


def complete_finished_appointments(app, clock=None):
    """Auto-complete Confirmed appointments that have ended.

    Goes through the orchestrator so each completion is a checked status
    transition and emits a revenue event.
    """
    clock = clock or app.extensions.get("booking_clock", datetime.now)
    current_time_str = clock().strftime("%Y-%m-%d %H:%M:%S")

    with app.app_context():
        try:
            orchestrator = BookingOrchestrator(
                db.session,
                clock=clock,
                revenue_sink=app.extensions.get("revenue_sink"),
            )
            completed = orchestrator.complete_finished()
            if completed:
                app.logger.info(
                    f"[SCHEDULER] {current_time_str} - Auto-completed {len(completed)} appointment(s)"
                )
            else:
                app.logger.debug(
                    f"[SCHEDULER] {current_time_str} - No appointments to auto-complete"
                )
            return len(completed)
        except Exception as e:
            db.session.rollback()
            app.logger.error(
                f"[SCHEDULER] {current_time_str} - Error auto-completing appointments: {e}"
            )
            raise


def init_scheduler(app):
    """Initialize the APScheduler scheduler with Flask app context."""
    minutes = app.config.get("SCHEDULER_INTERVAL_MINUTES", 5)

    scheduler.add_job(
        complete_finished_appointments,
        "interval",
        minutes=minutes,
        args=[app],
        id="complete_finished_appointments",
        replace_existing=True,
    )

    if not scheduler.running:
        scheduler.start()
        app.logger.info(f"[SCHEDULER] Scheduler started (every {minutes} min)")
    else:
        app.logger.info("[SCHEDULER] Scheduler already running (skipping duplicate start)")

    # Shut down the scheduler when exiting the app
    atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)
