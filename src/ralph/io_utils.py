"""UTF-8 text and JSON reading helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

PathLike = Path | str

_BOM = "\ufeff"


def read_text(path: PathLike, errors: str = "strict", **kwargs: Any) -> str:
    """Read path as text with UTF-8 encoding. Forwards extra kwargs to Path.read_text."""
    p = path if isinstance(path, Path) else Path(path)
    return p.read_text(encoding="utf-8", errors=errors, **kwargs)


def read_json(path: PathLike) -> Any:
    """Read and decode a JSON file.

    Raises ``FileNotFoundError`` when *path* is missing and
    ``json.JSONDecodeError`` (a ``ValueError``) when it is not valid JSON.
    A leading UTF-8 byte-order mark is ignored.
    """
    text = read_text(path)
    if text.startswith(_BOM):
        text = text[1:]
    return json.loads(text)
