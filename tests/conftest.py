"""
Global conftest for the gateway test-suite.

Provides a pretty unified-diff assertion helper for clearer dict-vs-dict
failures.
"""

import json
import difflib


# --------------------------------------------------------------------------- #
# Pretty diff for dict comparisons                                            #
# --------------------------------------------------------------------------- #
def pytest_assertrepr_compare(op, left, right):
    """Pretty unified-diff output when comparing two dicts with ==."""
    if isinstance(left, dict) and isinstance(right, dict) and op == "==":
        lhs = json.dumps(left, indent=2, sort_keys=True, default=str).splitlines()
        rhs = json.dumps(right, indent=2, sort_keys=True, default=str).splitlines()
        return [""] + list(
            difflib.unified_diff(lhs, rhs, fromfile="left", tofile="right")
        )
