"""
Test APScheduler configuration and the shared run lock
"""

import pytest
import threading
from datetime import datetime
from unittest.mock import Mock, patch

import pytz


class TestSchedulerConfiguration:
    """Test scheduler configuration and setup"""

    def test_create_scheduler(self):
        """Test creating APScheduler instance"""
        from fire_tracker.scheduler.tasks import create_scheduler

        scheduler = create_scheduler()
        assert scheduler is not None
        assert hasattr(scheduler, 'add_job')
        assert hasattr(scheduler, 'shutdown')

    def test_scheduler_timezone(self):
        """Test scheduler uses the Maranhão local timezone"""
        from fire_tracker.scheduler.tasks import create_scheduler

        scheduler = create_scheduler()
        assert str(scheduler.timezone) == 'America/Fortaleza'


class TestMidnightDelay:
    """Test delay computation until the next local midnight"""

    def test_one_hour_before_midnight(self):
        from fire_tracker.scheduler.tasks import seconds_until_next_midnight

        tz = pytz.timezone('America/Fortaleza')
        now = tz.localize(datetime(2025, 3, 10, 23, 0))
        assert seconds_until_next_midnight(now, tz) == 3600

    def test_naive_noon(self):
        from fire_tracker.scheduler.tasks import seconds_until_next_midnight

        tz = pytz.timezone('America/Fortaleza')
        assert seconds_until_next_midnight(datetime(2025, 3, 10, 12, 0), tz) == 43200

    def test_exactly_midnight_waits_full_day(self):
        from fire_tracker.scheduler.tasks import seconds_until_next_midnight

        tz = pytz.timezone('America/Fortaleza')
        assert seconds_until_next_midnight(datetime(2025, 3, 10, 0, 0), tz) == 86400

    def test_aware_utc_is_converted(self):
        """02:00 UTC is 23:00 in Fortaleza (UTC-3)"""
        from fire_tracker.scheduler.tasks import seconds_until_next_midnight

        tz = pytz.timezone('America/Fortaleza')
        now = pytz.utc.localize(datetime(2025, 3, 11, 2, 0))
        assert seconds_until_next_midnight(now, tz) == 3600


class TestSchedulerLifecycle:
    """Test starting and stopping the scheduler"""

    def test_start_and_stop(self):
        from fire_tracker.scheduler.tasks import (
            INGESTION_JOB_ID, get_scheduler_status, start_scheduler, stop_scheduler
        )

        scheduler = start_scheduler()
        try:
            assert scheduler.running
            job = scheduler.get_job(INGESTION_JOB_ID)
            assert job is not None

            local = job.next_run_time.astimezone(pytz.timezone('America/Fortaleza'))
            assert (local.hour, local.minute) == (0, 0)

            status = get_scheduler_status()
            assert status['running'] is True
            assert status['jobs'][0]['id'] == INGESTION_JOB_ID
        finally:
            stop_scheduler(scheduler)

        assert not scheduler.running
        assert get_scheduler_status()['running'] is False

    @patch('fire_tracker.scheduler.tasks.run_pipeline')
    def test_failed_run_keeps_job_scheduled(self, mock_pipeline):
        """A failing scheduled run releases the lock and leaves the job in place"""
        from fire_tracker.scheduler import tasks

        mock_pipeline.side_effect = RuntimeError("database down")

        scheduler = tasks.start_scheduler()
        try:
            tasks.scheduled_ingestion()

            assert not tasks.is_running()
            assert tasks.get_last_run()['status'] == 'failed'
            assert scheduler.get_job(tasks.INGESTION_JOB_ID) is not None
        finally:
            tasks.stop_scheduler(scheduler)


class TestRunLock:
    """Test mutual exclusion between scheduled and manual runs"""

    @patch('fire_tracker.scheduler.tasks.run_pipeline')
    def test_successful_run_records_status(self, mock_pipeline):
        from fire_tracker.scheduler.tasks import get_last_run, run_ingestion

        mock_pipeline.return_value = Mock(inserted=7)

        report = run_ingestion(trigger='manual', sources=['VIIRS_SNPP_NRT'])

        assert report.inserted == 7
        mock_pipeline.assert_called_once_with(sources=['VIIRS_SNPP_NRT'])
        last = get_last_run()
        assert last['status'] == 'succeeded'
        assert last['trigger'] == 'manual'
        assert last['inserted'] == 7

    @patch('fire_tracker.scheduler.tasks.run_pipeline')
    def test_busy_lock_skips_run(self, mock_pipeline):
        from fire_tracker.scheduler import tasks

        tasks._run_lock.acquire()
        try:
            assert tasks.is_running()
            assert tasks.run_ingestion(trigger='manual') is None
        finally:
            tasks._run_lock.release()

        mock_pipeline.assert_not_called()

    @patch('fire_tracker.scheduler.tasks.run_pipeline')
    def test_error_propagates_and_releases_lock(self, mock_pipeline):
        from fire_tracker.scheduler import tasks

        mock_pipeline.side_effect = ValueError("bad")

        with pytest.raises(ValueError):
            tasks.run_ingestion(trigger='backfill')

        assert not tasks.is_running()
        assert tasks.get_last_run()['error'] == 'bad'

    @patch('fire_tracker.scheduler.tasks.run_pipeline')
    def test_concurrent_runs_never_overlap(self, mock_pipeline):
        """While one run is in flight a second caller is turned away"""
        from fire_tracker.scheduler import tasks

        entered = threading.Event()
        release = threading.Event()

        def slow_pipeline(**kwargs):
            entered.set()
            release.wait(timeout=5)
            return Mock(inserted=0)

        mock_pipeline.side_effect = slow_pipeline
        results = {}

        worker = threading.Thread(target=lambda: results.update(first=tasks.run_ingestion(trigger='scheduled')))
        worker.start()
        assert entered.wait(timeout=5)

        results['second'] = tasks.run_ingestion(trigger='manual')
        release.set()
        worker.join(timeout=5)

        assert results['second'] is None
        assert results['first'] is not None
        assert mock_pipeline.call_count == 1
        assert not tasks.is_running()
