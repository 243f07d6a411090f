"""Per-pair file layout and whole-file JSON writes.

Both the watermark and the history of a pair are replaced by writing a
temporary sibling file and renaming it over the target, so readers never
observe a partially written file.
"""

import json
import os
import re
import tempfile
from pathlib import Path

from tradesync.exceptions import InvalidInputError

_PAIR_ID_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-]*$")


def validate_pair_id(pair_id: str) -> str:
    """Reject pair ids that cannot safely name a file in the data directory."""
    if not isinstance(pair_id, str) or not _PAIR_ID_RE.match(pair_id):
        raise InvalidInputError(f"invalid pair id: {pair_id!r}")
    return pair_id


class PairFiles:
    """Resolves the history and watermark file paths of a pair."""

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def history_path(self, pair_id: str) -> Path:
        return self._data_dir / f"{validate_pair_id(pair_id)}.json"

    def watermark_path(self, pair_id: str) -> Path:
        return self._data_dir / f"{validate_pair_id(pair_id)}.meta.json"


def write_json_atomic(path: Path, payload: object) -> None:
    """Serialize payload next to path, then atomically replace path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
