#!/usr/bin/env python3
# backend/run_backend.py
"""
Development server runner.

For local development only: on the default SQLite database the tables are
created on start, since schema migrations are owned elsewhere.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

# Default SITE_MODE for local development
os.environ.setdefault("SITE_MODE", "local")

import uvicorn

from tutorbook.core.config import settings
from tutorbook.database import init_schema

if __name__ == "__main__":
    if settings.get_database_url().startswith("sqlite"):
        init_schema()
    print(f"Starting development server (admin timezone {settings.admin_timezone})")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run(
        "tutorbook.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_delay=0.5,  # Small delay to batch rapid file changes
        log_level="info",
        timeout_graceful_shutdown=5,  # Force shutdown after 5s instead of hanging
    )
