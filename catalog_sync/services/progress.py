from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

Import shows one bar over the decoded rows; export shows a counter over the
collections fetched (total unknown until the last page). Without a TTY
(CI, pipes) no bar exists and every call is a no-op.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Counts processed items and failures; draws a bar on a TTY."""

    def __init__(self, total: int | None, *, description: str = "Applying rows", unit: str = "row") -> None:
        self.total = total
        self.done = 0
        self.failed = 0
        self.pbar: TqdmType[Any] | None = None
        if is_tty_enabled():
            self.pbar = tqdm(
                total=total,
                desc=description,
                unit=unit,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    @property
    def enabled(self) -> bool:
        return self.pbar is not None

    def advance(self, success: bool = True) -> None:
        self.done += 1
        if not success:
            self.failed += 1
        if self.pbar is None:
            return
        self.pbar.update(1)
        if self.failed:
            self.pbar.set_postfix(failed=self.failed)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
