from __future__ import annotations

import sys
from collections.abc import Callable
from enum import Enum
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Import progress: stage ranges, monotonic reporter and tqdm display (TTY only).

The pipeline publishes ``(fraction, description)`` pairs through a plain
callback. ProgressReporter owns the stage arithmetic and guarantees that the
published fraction stays inside [0, 1] and never goes backwards.
ImportProgressBar is one such callback, rendering a single tqdm bar when
stdout is a TTY and doing nothing otherwise (CI logs stay free of ANSI spam).
"""

__all__ = [
    "ProgressCallback",
    "ImportStage",
    "ProgressReporter",
    "ImportProgressBar",
    "is_tty_enabled",
]

ProgressCallback = Callable[[float, str], None]


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled.

    Returns:
        True if stdout is a TTY and progress should be displayed, False otherwise
    """
    return sys.stdout.isatty()


class ImportStage(Enum):
    """Pipeline stages with their fixed slice of the progress range."""
    INITIALIZING = (1, "Initializing", 0.00, 0.10)
    OPENING = (2, "Opening workbook", 0.10, 0.40)
    LOCATING = (3, "Locating structure", 0.40, 0.72)
    DECODING = (4, "Processing rows", 0.72, 0.90)
    FINALIZING = (5, "Finalizing", 0.90, 1.00)

    def __init__(self, number: int, title: str, start: float, end: float) -> None:
        self.number = number
        self.title = title
        self.start = start
        self.end = end

    def at(self, fraction: float) -> float:
        """Overall progress for ``fraction`` (0..1) of the way through this stage."""
        fraction = min(max(fraction, 0.0), 1.0)
        return self.start + (self.end - self.start) * fraction

    def label(self, detail: str | None = None) -> str:
        text = f"Phase {self.number}/{len(ImportStage)}: {self.title}..."
        return f"{text} {detail}" if detail else text


class ProgressReporter:
    """Clamp and de-duplicate progress before handing it to a callback."""

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self.callback = callback
        self.fraction = 0.0
        self.description = ""

    def report(self, fraction: float, description: str | None = None) -> None:
        value = min(max(fraction, 0.0), 1.0)
        self.fraction = max(self.fraction, value)
        if description is not None:
            self.description = description
        if self.callback is not None:
            self.callback(self.fraction, self.description)

    def enter(self, stage: ImportStage, detail: str | None = None) -> None:
        self.report(stage.start, stage.label(detail))

    def advance(self, stage: ImportStage, fraction: float, detail: str | None = None) -> None:
        self.report(stage.at(fraction), stage.label(detail) if detail is not None else None)

    def finish(self, description: str) -> None:
        self.report(1.0, description)


class ImportProgressBar:
    """tqdm-backed progress callback for the CLI.

    Usable as a context manager; the bar is only created on a TTY.
    """

    SCALE = 1000  # bar units for the full [0, 1] range

    def __init__(self, *, description: str = "Importing") -> None:
        self.description = description
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=self.SCALE,
                desc=description,
                unit="",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
                bar_format="{desc} |{bar}| {percentage:3.0f}%",
            )
        else:
            self.pbar = None
        self._position = 0

    def __call__(self, fraction: float, description: str) -> None:
        if not self.enabled or self.pbar is None:
            return
        target = int(round(min(max(fraction, 0.0), 1.0) * self.SCALE))
        if target > self._position:
            self.pbar.update(target - self._position)
            self._position = target
        if description:
            self.pbar.set_description(description, refresh=False)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        """Close the progress bar."""
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ImportProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
