from __future__ import annotations

import hashlib
import logging
import threading
from collections import defaultdict
from typing import Any, Dict

logger = logging.getLogger(__name__)


class ListingCache:
    """Version counters for list views, combined with a fingerprint of stored rows into an ETag.

    The counter only covers writes made by this process. Callers pass the row
    fingerprint so writes from other workers or scripts also change the tag.
    """

    def __init__(self) -> None:
        self._versions: Dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def version(self, key: str) -> int:
        with self._lock:
            return self._versions[key]

    def etag(self, key: str, *state: Any) -> str:
        material = repr((self.version(key),) + tuple(state)).encode("utf-8")
        return f'W/"{key}-{hashlib.sha256(material).hexdigest()[:20]}"'

    def invalidate(self, key: str) -> int:
        with self._lock:
            self._versions[key] += 1
            version = self._versions[key]
        logger.debug("Listing %s invalidated (version=%s)", key, version)
        return version


listing_cache = ListingCache()
