"""
Gunicorn Configuration for Production

Run with: gunicorn main:app -c gunicorn.conf.py

Solve requests hold a worker slot for up to CAPTCHA_SOLVE_TIMEOUT seconds
while the remote service works, so the worker timeout sits above it.

MEMORY REQUIREMENTS:
- Base App (1 worker): ~100MB
- Browser Pool (shared): ~300MB
- Per Browser Context: ~50MB
"""

import multiprocessing
import os

# =============================================================================
# Server Socket
# =============================================================================

bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# =============================================================================
# Worker Processes
# =============================================================================

# LOW_MEMORY_MODE: one worker, the browser pool is per process
LOW_MEMORY_MODE = os.getenv("LOW_MEMORY_MODE", "true").lower() == "true"

if LOW_MEMORY_MODE:
    workers = int(os.getenv("GUNICORN_WORKERS", "1"))
else:
    workers = int(os.getenv("GUNICORN_WORKERS", min(2 * multiprocessing.cpu_count() + 1, 4)))

# Use Uvicorn worker for async support
worker_class = "uvicorn.workers.UvicornWorker"

# Worker timeout must outlast the slowest solve plus page load
timeout = int(float(os.getenv("CAPTCHA_SOLVE_TIMEOUT", "120"))) + 60
graceful_timeout = 30
keepalive = 5

max_requests = 500 if LOW_MEMORY_MODE else 1000
max_requests_jitter = 50 if LOW_MEMORY_MODE else 100

# =============================================================================
# Logging
# =============================================================================

accesslog = "-"  # stdout
errorlog = "-"   # stderr
loglevel = os.getenv("LOG_LEVEL", "info")

access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# =============================================================================
# Process Naming
# =============================================================================

proc_name = "captcha-relay"
