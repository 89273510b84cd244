"""
Sync constants — batch sizing, mode threshold, staleness and job states.

Version: 1.0.0
"""

# Items per bulk call to the recommendation service
BATCH_SIZE: int = 50

# Candidate counts below this run synchronously in the triggering call
DIRECT_SYNC_THRESHOLD: int = 1000

# Minimum minutes since last successful sync before an item is eligible again
STALENESS_WINDOW_MINUTES: int = 60

# Descriptions longer than this are truncated and suffixed with an ellipsis
DESCRIPTION_MAX_LENGTH: int = 5000
DESCRIPTION_ELLIPSIS: str = "..."

# Catalog status that makes an item publishable
PUBLISHABLE_STATUS: str = "publish"

# Wire statuses
RECORD_STATUS_PUBLISHED: str = "published"
RECORD_STATUS_DRAFT: str = "draft"

# Job states
JOB_STATUS_IDLE: str = "idle"
JOB_STATUS_RUNNING: str = "running"
JOB_STATUS_COMPLETED: str = "completed"
JOB_STATUS_FAILED: str = "failed"

# Job modes
SYNC_MODE_DIRECT: str = "direct"
SYNC_MODE_BACKGROUND: str = "background"

# Celery task fired for each background tick
PROCESS_NEXT_BATCH_TASK: str = "tasks.catalog_sync.process_next_batch"

# Record used by the connection test
CONNECTION_TEST_EXTERNAL_ID: str = "test-connection"
