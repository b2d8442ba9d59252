"""Configuration singleton for the stencil splitter."""

import json
import os
from pathlib import Path
from typing import Optional, Tuple


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() == "true"


class Config:
    """Singleton configuration class."""

    _instance: Optional["Config"] = None
    _CONFIG_FILE_PATH = (
        Path.home() / ".config" / "stencil-splitter" / "stencil-splitter.json"
    )

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the cached instance so the next Config() re-reads the environment."""
        cls._instance = None

    def _initialize(self):
        """Initialize all configuration values."""
        # Print geometry
        self.PRINT_DPI: int = 300
        self.PAPER_WIDTH_MM: float = 210
        self.PAPER_HEIGHT_MM: float = 297
        self.TARGET_WIDTH_MIN_IN: float = 4
        self.TARGET_WIDTH_MAX_IN: float = 8
        self.DEFAULT_TARGET_WIDTH_IN: float = 6.5
        self.OVERLAP_OPTIONS_MM: Tuple[int, ...] = (0, 5, 10, 15)

        # Upload constraints
        self.MAX_FILE_SIZE_MB: float = _env_float("STENCIL_MAX_FILE_SIZE_MB", 10)
        self.ALLOWED_MIME_TYPES: Tuple[str, ...] = (
            "image/jpeg",
            "image/png",
            "image/webp",
        )

        # Grid / registration overlay (off unless explicitly enabled)
        self.DRAW_ALIGNMENT_MARKS: bool = _env_flag("STENCIL_ALIGNMENT_MARKS")
        self.GRID_SPACING_CM: float = 1
        self.ALIGNMENT_MARK_SIZE_MM: float = 5

        # Remote sources
        self.FETCH_TIMEOUT: float = _env_float("STENCIL_FETCH_TIMEOUT", 30)

        # Storage
        self.STORAGE_DIR: str = os.environ.get(
            "STENCIL_STORAGE_DIR",
            str(Path.home() / ".local" / "share" / "stencil-splitter"),
        )
        self.JOBS_FILENAME = "print_jobs.json"
        self.SHEETS_DIRNAME = "sheets"
        self.PDF_FILENAME = "tattoo-stencil.pdf"

        self.DEBUG_MODE: bool = _env_flag("STENCIL_DEBUG")
        self.USER_ID: str = os.environ.get(
            "STENCIL_USER_ID", "debug-user-123" if self.DEBUG_MODE else "local-user"
        )

        # GUI settings
        self.GUI_WINDOW_WIDTH: int = 1024
        self.GUI_WINDOW_HEIGHT: int = 768

    @property
    def MAX_FILE_SIZE_BYTES(self) -> int:
        return int(self.MAX_FILE_SIZE_MB * 1024 * 1024)

    @property
    def PIXELS_PER_MM(self) -> float:
        return self.PRINT_DPI / 25.4

    @property
    def jobs_path(self) -> Path:
        return Path(self.STORAGE_DIR) / self.JOBS_FILENAME

    @property
    def sheets_dir(self) -> Path:
        return Path(self.STORAGE_DIR) / self.SHEETS_DIRNAME

    def save(self) -> None:
        """Save configuration to JSON file."""
        self._CONFIG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)

        data = {}
        for key, value in vars(self).items():
            if key.startswith("_"):
                continue
            data[key] = value

        with open(self._CONFIG_FILE_PATH, "w") as f:
            json.dump(data, f, indent=2)

    def load(self) -> None:
        """Load configuration from JSON file."""
        if not self._CONFIG_FILE_PATH.exists():
            return

        with open(self._CONFIG_FILE_PATH, "r") as f:
            data = json.load(f)

        for key, value in data.items():
            if hasattr(self, key) and not key.startswith("_"):
                if isinstance(getattr(self, key), tuple):
                    value = tuple(value)
                setattr(self, key, value)
