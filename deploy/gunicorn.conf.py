"""
Gunicorn configuration for the CohortDesk API.

Run with: gunicorn cohortdesk.main:app -c deploy/gunicorn.conf.py
"""
import os

# Server socket
bind = os.environ.get("BIND", "0.0.0.0:8000")
backlog = 2048

# Writers are serialized per process; with the default SQLite database
# keep a single worker. Raise WEB_CONCURRENCY only on a server database.
workers = int(os.environ.get("WEB_CONCURRENCY", 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
keepalive = 5

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("COHORTDESK_LOG_LEVEL", "info").lower()

proc_name = "cohortdesk"

daemon = False

limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190
