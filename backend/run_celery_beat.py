#!/usr/bin/env python3
# backend/run_celery_beat.py
"""
Development Celery beat runner; schedules the hourly lifecycle sweep.
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
    print("Starting Celery beat (SITE_MODE=" + os.getenv("SITE_MODE", "local") + ")")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "tutorbook.tasks.celery_app",
        "beat",
        "--loglevel=info",
    ]

    subprocess.run(cmd)
