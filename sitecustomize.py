"""
Monorepo import shim (dev/test only).

Loaded automatically by Python at startup *if* the repo root is on sys.path.
Puts every `packages/*/src` and `services/*/src` root on sys.path so the
shared libraries and the service import without an editable install.
"""
from pathlib import Path
import sys, os, json
from datetime import datetime, timezone

ROOT = Path(__file__).resolve().parent

_pkg_srcs = sorted((ROOT / "packages").glob("*/src"))
_svc_srcs = sorted((ROOT / "services").glob("*/src"))

src_roots = [ROOT] + _pkg_srcs + _svc_srcs

# Prepend deterministically (preserve order; avoid dups)
for p in map(str, src_roots):
    if p and p not in sys.path:
        sys.path.insert(0, p)

# Optional debug hook (structured line, opt-in)
if os.getenv("UNFOLDER_IMPORT_DEBUG") == "1":
    msg = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00","Z"),
        "level": "INFO",
        "service": "import-shim",
        "message": "sitecustomize.paths_injected",
        "meta": {
            "paths_added": len(src_roots),
            "first_paths": [str(p) for p in src_roots[:3]],
        },
    }
    print(json.dumps(msg), file=sys.stderr)
