"""
Project-wide PyTest bootstrap.

Responsibilities
────────────────
1.  Put every `*/src` directory on PYTHONPATH so tests can import the
    project’s packages without editable installs.
2.  Fail early when the async test plugin is missing.
"""

from pathlib import Path
import sys

# ── 1 · add all source roots to PYTHONPATH (prepend so we win over site-packages) ─
ROOT = Path(__file__).parent.resolve()
_paths = (
    [str(p) for p in (ROOT / "packages").glob("*/src")]   # packages/*/src
    + [str(p) for p in (ROOT / "services").glob("*/src")] # services/*/src
)
# Preserve order but ensure local paths take precedence
for _p in reversed(_paths):
    if _p not in sys.path:
        sys.path.insert(0, _p)

# ── 2 · required plugins ──────────────────────────────────────────────────
#     Fail early with a clear, readable message if a developer forgets the
#     dependency pin.
try:
    __import__("pytest_asyncio")
except ImportError as exc:
    raise RuntimeError(
        "pytest_asyncio is required for async tests – "
        "install the project with the 'test' extra."
    ) from exc
