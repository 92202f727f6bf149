"""Load a conversation file handed over directly (drag-and-drop, ``play-file``)."""
from __future__ import annotations

from pathlib import Path

from agentreplay.errors import UnsupportedFileError
from agentreplay.model import UnifiedMessage
from agentreplay.parsers.export import parse_export_text
from agentreplay.paths import read_text


def load_dropped_file(path: Path | str) -> list[UnifiedMessage]:
    """Parse a structured-export ``.json`` file.

    Raises ``UnsupportedFileError`` for any other extension (without reading
    the file) and lets ``UnrecognizedFormatError`` propagate.
    """
    path = Path(path)
    if path.suffix.lower() != ".json":
        raise UnsupportedFileError(f"Please drop a .json file (got {path.name!r})")
    return parse_export_text(read_text(path))
