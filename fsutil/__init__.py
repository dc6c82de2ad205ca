"""Filtered filesystem walking, symlink following, change validation and tar export."""

__version__ = "0.1.0"
__all__ = [
    "types",
    "stat",
    "validator",
    "hardlinks",
    "patterns",
    "fs",
    "followlinks",
    "filter",
    "tarwriter",
]