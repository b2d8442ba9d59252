"""Callback definitions for split progress reporting."""

from dataclasses import dataclass
from typing import Callable


@dataclass
class SplitCallbacks:
    """Callbacks that the split job will call to report progress"""

    on_stage: Callable[[str, str], None]
    on_sheet_ready: Callable[[str, int, str], None]
    on_error: Callable[[str, str], None]
    on_complete: Callable[[str, int, float], None]

    @classmethod
    def silent(cls) -> "SplitCallbacks":
        def ignore(*args) -> None:
            return None

        return cls(
            on_stage=ignore,
            on_sheet_ready=ignore,
            on_error=ignore,
            on_complete=ignore,
        )
