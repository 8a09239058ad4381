"""Change detection: which records in a collection are new or revised."""
import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field

from models.enums import DataClass

logger = logging.getLogger("fxbias.changes")

MAX_TRACKED_PER_SOURCE = 5000

# Fields that move on every fetch without the underlying figure changing
_VOLATILE_FIELDS = ("timestamp", "validation_passed", "next_release")


@dataclass
class ChangeSet:
    source: str
    new_keys: list = field(default_factory=list)
    changed_keys: list = field(default_factory=list)
    assets: set = field(default_factory=set)

    @property
    def has_changes(self):
        return bool(self.new_keys or self.changed_keys)


def fingerprint(record):
    """Content hash of a record, ignoring when it was fetched."""
    payload = {k: v for k, v in record.to_dict().items() if k not in _VOLATILE_FIELDS}
    return hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode()).hexdigest()


class ChangeDetector:
    """Remembers a content hash per record key, per source.

    A key never seen before is new; a known key whose hash moved is a
    revision. Price points and points that failed validation are ignored
    since they do not feed the scores. Each source keeps at most
    `max_tracked` keys, least recently seen dropped first.
    """

    def __init__(self, max_tracked=MAX_TRACKED_PER_SOURCE):
        self.max_tracked = max_tracked
        self._seen = {}
        self._lock = threading.Lock()

    def detect(self, result):
        changes = ChangeSet(source=result.source)
        records = [p for p in result.points
                   if p.validation_passed and p.indicator.data_class != DataClass.PRICE]
        records += list(result.positioning) + list(result.sentiment)

        with self._lock:
            seen = self._seen.setdefault(result.source, OrderedDict())
            for record in records:
                key = record.key
                digest = fingerprint(record)
                previous = seen.get(key)
                if previous != digest:
                    (changes.new_keys if previous is None else changes.changed_keys).append(key)
                    changes.assets.add(record.asset)
                    seen[key] = digest
                seen.move_to_end(key)
            while len(seen) > self.max_tracked:
                seen.popitem(last=False)

        if changes.has_changes:
            logger.info(f"[{result.source}] {len(changes.new_keys)} new, {len(changes.changed_keys)} revised "
                        f"records for {', '.join(sorted(a.value for a in changes.assets))}")
        return changes

    def tracked(self, source):
        with self._lock:
            return len(self._seen.get(source, ()))
