"""
Put `src/` on `sys.path` for local runs.

Python imports `sitecustomize` automatically when it is importable at startup,
so `uvicorn api.index:app` and ad-hoc scripts from the repo root can import
`programs`, `providers` and `schemas` without an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path

_src = Path(__file__).resolve().parent / "src"
if _src.is_dir() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))
