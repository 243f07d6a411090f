"""Per-pair watermark persistence.

The watermark never regresses: writes that are not strictly newer than
the stored value are ignored.
"""

import json

from tradesync.logging import get_logger
from tradesync.models import Watermark
from tradesync.storage.files import PairFiles, write_json_atomic

logger = get_logger(__name__)


class WatermarkStore:
    """Reads and writes ``<pair_id>.meta.json`` files.

    Usage:
        store = WatermarkStore(PairFiles("tokenlist"))
        mark = store.read("PAIR")
        store.write("PAIR", 1700000000)
    """

    def __init__(self, files: PairFiles) -> None:
        self._files = files

    def read(self, pair_id: str) -> Watermark:
        """Return the stored watermark, or a first-run watermark.

        A missing or unreadable file counts as "no prior successful run".
        """
        path = self._files.watermark_path(pair_id)
        if not path.exists():
            return Watermark()

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("watermark_unreadable", pair_id=pair_id, error=str(e))
            return Watermark()

        value = data.get("last_fetched_time") if isinstance(data, dict) else None
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            logger.warning("watermark_invalid", pair_id=pair_id, value=value)
            return Watermark()
        return Watermark(last_fetched_time=value)

    def write(self, pair_id: str, last_fetched_time: int) -> bool:
        """Persist last_fetched_time if it is newer than the stored value.

        Returns True when the file was written.
        """
        current = self.read(pair_id).last_fetched_time
        if last_fetched_time <= current:
            logger.debug(
                "watermark_not_advanced",
                pair_id=pair_id,
                current=current,
                proposed=last_fetched_time,
            )
            return False

        write_json_atomic(
            self._files.watermark_path(pair_id),
            {"last_fetched_time": last_fetched_time},
        )
        logger.debug(
            "watermark_advanced",
            pair_id=pair_id,
            previous=current,
            last_fetched_time=last_fetched_time,
        )
        return True
