"""
Unit tests for sync constants.

Version: 1.0.0
"""
import pytest

from catalog_sync.core import constants
from catalog_sync.core.constants import sync

pytestmark = pytest.mark.unit


class TestSyncConstants:

    def test_batch_size_below_direct_threshold(self):
        assert sync.BATCH_SIZE == 50
        assert sync.DIRECT_SYNC_THRESHOLD == 1000
        assert sync.BATCH_SIZE < sync.DIRECT_SYNC_THRESHOLD

    def test_staleness_window(self):
        assert sync.STALENESS_WINDOW_MINUTES == 60

    def test_tick_task_name_matches_celery_task(self):
        assert sync.PROCESS_NEXT_BATCH_TASK == "tasks.catalog_sync.process_next_batch"

    def test_job_states_distinct(self):
        states = {
            sync.JOB_STATUS_IDLE,
            sync.JOB_STATUS_RUNNING,
            sync.JOB_STATUS_COMPLETED,
            sync.JOB_STATUS_FAILED,
        }
        assert len(states) == 4

    def test_package_reexports(self):
        for name in constants.__all__:
            if name == "sync":
                continue
            assert getattr(constants, name) == getattr(sync, name)
