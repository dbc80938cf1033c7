"""UTF-8 JSON document I/O shared by the file store and ``taskbook export``."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

PathLike = Path | str


def _as_path(path: PathLike) -> Path:
    return path if isinstance(path, Path) else Path(path)


def dump_json(value: Any) -> str:
    """Pretty-print *value*; non-ASCII text is kept readable. Raises TypeError/ValueError."""
    return json.dumps(value, indent=2, ensure_ascii=False) + "\n"


def read_json(path: PathLike) -> Any:
    """Parse the UTF-8 JSON document at *path*."""
    return json.loads(_as_path(path).read_text(encoding="utf-8"))


def write_json(path: PathLike, value: Any, *, atomic: bool = False) -> None:
    """Serialize *value* to *path*, creating parent directories.

    With ``atomic=True`` the document is written to a hidden sibling first and
    swapped in, so readers never see half a file. Serialization happens
    before anything touches the disk.
    """
    p = _as_path(path)
    text = dump_json(value)
    p.parent.mkdir(parents=True, exist_ok=True)
    if not atomic:
        p.write_text(text, encoding="utf-8")
        return
    tmp = p.with_name(f".{p.name}.tmp")
    tmp.write_text(text, encoding="utf-8")
    # os.replace overwrites destination if it exists (required on Windows)
    os.replace(tmp, p)
