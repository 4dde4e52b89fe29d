"""
Gunicorn configuration for the MindWell API.

Env vars that override defaults:
  PORT              TCP port to bind (Railway sets this automatically)
  WORKERS           number of worker processes (default: 2)
  ENABLE_SCHEDULER  must stay false here when WORKERS > 1; run the goal
                    sweeps in a single process with `python -m mindwell.jobs`
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Classifier calls can take up to LLM_TIMEOUT_SECONDS; leave headroom.
timeout = 120

loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
