# File: relschema/utils.py
"""
relschema - Utility Functions & Helpers
========================================
Path and column-reference helpers shared by the compiler, the validators and
the SQLAlchemy binder, plus a small timing context manager for the CLI.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Optional, Sequence, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("relschema.utils")


# ---------------------------------------------------------------------------
# Id-path / column reference helpers
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def flatten_id_path(id_path: str) -> str:
    """
    Turn a dotted id-path into a foreign-key column name.

    Examples:
        >>> flatten_id_path("Orders.id")
        'Orders_id'
        >>> flatten_id_path("Orders.order_no")
        'Orders_order_no'
    """
    return id_path.replace(".", "_")


def split_column_ref(ref: str) -> Tuple[str, str]:
    """
    Split a ``table.column`` reference.

    Raises:
        ValueError: If ``ref`` is not exactly two non-empty dotted parts.
    """
    parts = ref.split(".")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"'{ref}' is not a 'table.column' reference.")
    return parts[0], parts[1]


def is_column_ref(ref: object) -> bool:
    if not isinstance(ref, str):
        return False
    try:
        split_column_ref(ref)
    except ValueError:
        return False
    return True


def format_pointer(parts: Sequence[str]) -> str:
    """
    Render a JSON pointer (RFC 6901) for error messages.

    Examples:
        >>> format_pointer(["properties", "a/b"])
        '#/properties/a~1b'
        >>> format_pointer([])
        '#'
    """
    if not parts:
        return "#"
    escaped = (str(p).replace("~", "~0").replace("/", "~1") for p in parts)
    return "#/" + "/".join(escaped)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Context-manager timer for the CLI.

    Usage:
        with Timer("compile") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.info("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"
