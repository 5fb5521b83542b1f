#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Development Celery worker runner.

The worker enqueues one lifecycle sweep as soon as it is ready.
"""
import os
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

# Default SITE_MODE for local development
os.environ.setdefault("SITE_MODE", "local")

if __name__ == "__main__":
    # Allow both CELERY_QUEUE and CELERY_QUEUES; prefer CELERY_QUEUES if provided
    queues = os.getenv("CELERY_QUEUES") or os.getenv("CELERY_QUEUE") or "maintenance,celery"
    print("Starting Celery worker (SITE_MODE=" + os.getenv("SITE_MODE", "local") + ")")
    print(f"Consuming queues: {queues}")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "tutorbook.tasks.celery_app",
        "worker",
        "--loglevel=info",
        "--concurrency=1",
        "--pool=prefork",
        "-Q",
        queues,
    ]

    subprocess.run(cmd)
