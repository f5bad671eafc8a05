"""Gunicorn configuration for the webhook server.

One worker process, several threads: the Brivo token holder, the refresh
coordinator and the concurrency gate live in process memory and must be
shared by every request, so the server never forks more than one worker.

Run with:
    gunicorn -c gunicorn.conf.py "membersync.flask_app:create_app()"
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"
workers = 1
threads = int(os.environ.get("GUNICORN_THREADS", "8"))
worker_class = "gthread"
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "60"))
accesslog = "-"
errorlog = "-"
loglevel = "debug" if os.environ.get("DEBUG", "false").lower() == "true" else "info"


def post_fork(server, worker):
    """
    Called just after the worker has been forked.

    Reports where secrets will be read from; settings.py loads them.
    """
    from pathlib import Path
    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets")
            return
    worker.log.info("No /run/secrets mount, reading secrets from the environment")
