"""
Core package init for facewatch.

Makes the `facewatch` modules importable without requiring an editable install.
"""

__all__ = [
    "capture",
    "config",
    "detectors",
    "errors",
    "io_utils",
    "notify",
    "persistence",
    "recognition",
    "references",
    "session",
    "types",
    "viz",
]
