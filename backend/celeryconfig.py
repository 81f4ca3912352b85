"""
Celery settings for certmint workers.

Read by `celery_app.config_from_object("celeryconfig")` in certmint/tasks/__init__.py.
The broker and result store come from CELERY_BROKER_URL and
CELERY_RESULT_BACKEND, with a local Redis as fallback.
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
broker_connection_retry_on_startup = True

# Task arguments are stage names; results are outcome dicts
task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]
timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Execution
# ═══════════════════════════════════════════════════════════

# Stage jobs are not idempotent; a redelivered task repeats its side effects.
task_acks_late = True
task_reject_on_worker_lost = False

# One stage invocation at a time, across the whole worker
worker_concurrency = 1
worker_prefetch_multiplier = 1

# A Ready batch renders, pins and waits for finalized transactions
task_soft_time_limit = 30 * 60
task_time_limit = 31 * 60

# The next orchestrator cycle is the retry
task_max_retries = 0

result_expires = 24 * 3600
task_track_started = True

# ═══════════════════════════════════════════════════════════
#  Routing
# ═══════════════════════════════════════════════════════════
#   celery -A certmint.tasks worker -Q pipeline

task_default_queue = "pipeline"
task_routes = {"certmint.tasks.stage_tasks.*": {"queue": "pipeline"}}

# `python manage.py run` drives cycles by default. To let beat drive them:
#   beat_schedule = {"certmint-cycle": {
#       "task": "certmint.tasks.stage_tasks.run_cycle",
#       "schedule": 5 * 60.0,
#   }}
beat_schedule: dict = {}
