"""Accumulate lines of text and write them to a file."""

from __future__ import annotations

from pathlib import Path


class GenerateFile:
    """A text file assembled line by line before being written."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        self._contents: list[str] = []

    @property
    def contents(self) -> str:
        """The text collected so far."""
        return "".join(self._contents)

    def add_line(self, line: str = "") -> None:
        """Append ``line`` followed by a newline."""
        self._contents.append(f"{line}\n")

    def clear(self) -> None:
        """Drop all collected text."""
        self._contents.clear()

    def build(self) -> None:
        """Write the collected text, creating the parent directory if needed."""
        if not self.path:
            raise ValueError("no output path set")
        target = Path(self.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.contents)

    def reset_path(self, path: str | Path) -> None:
        """Change the output path."""
        self.path = str(path)