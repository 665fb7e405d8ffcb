"""
APScheduler tasks for the daily fire ingestion run
Runs the pipeline at local midnight and guards manual runs with a shared lock
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from datetime import datetime, timedelta
import threading
import pytz
import logging

from fire_tracker import config
from fire_tracker.data_ingestion.pipeline import run_pipeline


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


STATE_IDLE = 'idle'
STATE_RUNNING = 'running'

INGESTION_JOB_ID = 'ingest_fires'


# Scheduled and manual runs share this lock
_run_lock = threading.Lock()

_last_run = {
    'started_at': None,
    'finished_at': None,
    'status': None,
    'trigger': None,
    'error': None,
    'inserted': None,
}


# Global scheduler instance
_scheduler_instance = None


def get_timezone():
    return pytz.timezone(config.SCHEDULER_TIMEZONE)


def seconds_until_next_midnight(now=None, tz=None):
    """
    Delay until the next local midnight.

    Args:
        now: Aware or naive datetime (default: current time in tz)
        tz: pytz timezone (default: SCHEDULER_TIMEZONE)

    Returns:
        float: Seconds, always > 0
    """
    if tz is None:
        tz = get_timezone()
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = tz.localize(now)
    else:
        now = now.astimezone(tz)

    next_day = (now + timedelta(days=1)).date()
    midnight = tz.localize(datetime(next_day.year, next_day.month, next_day.day))
    return (midnight - now).total_seconds()


def create_scheduler():
    """
    Create APScheduler instance configured for the local timezone

    Returns:
        BackgroundScheduler: Configured scheduler
    """
    scheduler = BackgroundScheduler(
        timezone=get_timezone(),
        job_defaults={
            'coalesce': True,  # Combine multiple pending executions into one
            'max_instances': 1  # Only one instance of each job at a time
        }
    )

    return scheduler


def is_running():
    return _run_lock.locked()


def run_ingestion(trigger='manual', **pipeline_kwargs):
    """
    Run the pipeline unless another run is in flight.

    Args:
        trigger: Label recorded in the run status ('scheduled', 'manual', 'backfill', 'http')
        **pipeline_kwargs: Passed to run_pipeline

    Returns:
        PipelineReport, or None if a run was already in progress

    Raises:
        Whatever run_pipeline raises; the lock is always released
    """
    if not _run_lock.acquire(blocking=False):
        logger.warning(f"Ingestion already running; {trigger} run skipped")
        return None

    _last_run.update({
        'started_at': datetime.now().isoformat(),
        'finished_at': None,
        'status': STATE_RUNNING,
        'trigger': trigger,
        'error': None,
        'inserted': None,
    })

    try:
        report = run_pipeline(**pipeline_kwargs)
        _last_run.update({'status': 'succeeded', 'inserted': report.inserted})
        return report
    except Exception as e:
        _last_run.update({'status': 'failed', 'error': str(e)})
        raise
    finally:
        _last_run['finished_at'] = datetime.now().isoformat()
        _run_lock.release()


def scheduled_ingestion():
    """
    Scheduled job: daily ingestion at local midnight

    Never raises, so the cron trigger keeps firing after a failed run.
    """
    try:
        logger.info("Starting scheduled fire ingestion...")
        report = run_ingestion(trigger='scheduled')
        if report is not None:
            logger.info(f"Scheduled ingestion finished: {report.inserted} new incidents")
    except Exception as e:
        logger.error(f"Scheduled ingestion failed: {str(e)}")
    finally:
        logger.info(f"Next ingestion in {seconds_until_next_midnight() / 3600:.1f} hours")


def get_last_run():
    """
    Get information about the most recent run

    Returns:
        dict: started_at, finished_at, status, trigger, error, inserted
    """
    return _last_run.copy()


def start_scheduler():
    """
    Start the scheduler with the daily ingestion job

    Returns:
        BackgroundScheduler: Running scheduler instance
    """
    global _scheduler_instance

    scheduler = create_scheduler()

    scheduler.add_job(
        scheduled_ingestion,
        trigger=CronTrigger(hour=0, minute=0, timezone=get_timezone()),
        id=INGESTION_JOB_ID,
        name='Daily Fire Ingestion',
        replace_existing=True
    )

    # Start the scheduler
    scheduler.start()
    _scheduler_instance = scheduler

    logger.info("Scheduler started successfully")
    logger.info(f"  - Fire ingestion: daily at 00:00 {config.SCHEDULER_TIMEZONE}")
    logger.info(f"  - First run in {seconds_until_next_midnight() / 3600:.1f} hours")

    return scheduler


def stop_scheduler(scheduler=None):
    """
    Stop the scheduler gracefully

    Args:
        scheduler: Scheduler instance to stop (uses global if None)
    """
    global _scheduler_instance

    if scheduler is None:
        scheduler = _scheduler_instance

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")

    _scheduler_instance = None


def get_scheduler_status():
    """
    Get current scheduler status

    Returns:
        dict: Scheduler running flag, pipeline state, jobs and last run
    """
    state = STATE_RUNNING if is_running() else STATE_IDLE

    if _scheduler_instance is None:
        return {
            'running': False,
            'state': state,
            'jobs': [],
            'last_run': get_last_run()
        }

    jobs = []
    for job in _scheduler_instance.get_jobs():
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': job.next_run_time.isoformat() if job.next_run_time else None
        })

    return {
        'running': _scheduler_instance.running,
        'state': state,
        'jobs': jobs,
        'last_run': get_last_run()
    }


if __name__ == "__main__":
    # Start scheduler when run directly
    try:
        scheduler = start_scheduler()

        # Keep running
        import time
        logger.info("Scheduler is running. Press Ctrl+C to stop.")

        while True:
            time.sleep(60)
            status = get_scheduler_status()
            logger.info(f"Status: {status['state']}, {len(status['jobs'])} jobs active")

    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down scheduler...")
        stop_scheduler()
