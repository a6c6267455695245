import sys
from pathlib import Path

# Ensure the monorepo import shim is active even if PYTHONPATH is minimal.
# This guarantees 'packages/*/src' and 'services/*/src' are importable.
ROOT = Path(__file__).resolve().parents[4]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core_utils.uvicorn_entry import run
from core_config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    run("unfolder.app:app", port=settings.app_port, log_level=settings.service_log_level.lower(), access_log=False)
