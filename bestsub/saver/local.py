"""Saving result files into an output directory beside the executable."""

from __future__ import annotations

import os
from pathlib import Path

from bestsub.utils import executable_dir

OUTPUT_DIR_NAME = "output"


class LocalSaver:
    """Writes files into <base>/output."""

    def __init__(self, base_path: str | Path | None = None):
        base = executable_dir() if base_path is None else base_path
        if not str(base):
            raise OSError("get executable path failed")
        self.base_path = Path(base)
        self.output_path = self.base_path / OUTPUT_DIR_NAME

    def _validate(self, data: bytes, filename: str) -> None:
        if not data:
            raise ValueError("yaml data is empty")
        if not filename:
            raise ValueError("filename cannot be empty")
        if os.path.basename(filename) != filename:
            raise ValueError(f"filename contains illegal characters: {filename}")

    def save(self, data: bytes, filename: str) -> None:
        """Write *data* to output/<filename>, creating the directory if needed."""
        self.output_path.mkdir(mode=0o755, parents=True, exist_ok=True)
        self._validate(data, filename)
        (self.output_path / filename).write_bytes(data)


def save_to_local(data: bytes, filename: str) -> None:
    """Save into the output directory beside the executable."""
    LocalSaver().save(data, filename)