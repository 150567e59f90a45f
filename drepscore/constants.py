"""
Global constants for the DRep sync pipeline.

Centralizes magic numbers and configuration values used throughout
the pipeline for easier maintenance and tuning.
"""

# Koios API
KOIOS_DEFAULT_BASE_URL = "https://api.koios.rest/api/v1"
KOIOS_BATCH_SIZE = 50  # drep_info / drep_metadata accept at most 50 ids per call
VOTE_CONCURRENCY = 5  # Max in-flight drep_votes requests
REQUEST_TIMEOUT_SECONDS = 5.0  # Per-request timeout
KOIOS_MIN_REQUEST_INTERVAL_SECONDS = 0.0  # Extra spacing between requests (0 = semaphore only)
KOIOS_PAGE_SIZE = 1000  # Koios caps list responses at 1000 rows; larger sets are paged via offset

# Retry Configuration (transient errors only: timeout, connection, 429, 5xx)
FETCH_MAX_RETRIES = 2
FETCH_INITIAL_BACKOFF_SECONDS = 1.0  # Doubles each retry: 1s, 2s

# Validation
MAX_VALIDATION_ERRORS_KEPT = 3  # Sample of validation messages kept per response

# Persistence
UPSERT_BATCH_SIZE = 100
ERROR_SUMMARY_MAX_CHARS = 2000

# Sync verdict
UPSERT_ERROR_RATE_THRESHOLD = 0.05  # 5% of rows
SYNC_TIME_BUDGET_SECONDS = 280.0

# Lovelace per ADA
LOVELACE_PER_ADA = 1_000_000
