# Ensure 'backend/' is on sys.path so 'import tutorbook.*' works
# even when pytest is started from the repository root.
import os
from pathlib import Path
import sys

_BACKEND_ROOT = Path(__file__).resolve().parent  # <repo>/backend
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

# Settings are read at import time; pin the test configuration before any
# tutorbook module is imported.
os.environ["IS_TESTING"] = "true"
os.environ["ADMIN_TIMEZONE"] = "America/Caracas"
os.environ.setdefault("CI", "1")
