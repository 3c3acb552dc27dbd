"""
Gateway service: authoritative request assembly and backend proxying for
analyze, cycle-find and payment operations.
"""

__all__: list[str] = []
