import logging
import os

from config import DATA_DIR
from errors import FormatError
from patch import release_from_dir
from storage import index_path, load_gz_json, save_gz_json

logger = logging.getLogger(__name__)


class MatchIndex:
    """Known match IDs for one (region, release) partition.

    Kept apart from the Parquet file so existence checks never decode the
    partition. Loaded on first use; a missing file is an empty index.
    """

    def __init__(self, region: str, release, data_dir: str = DATA_DIR):
        self.region = region
        self.release = release
        self.path = index_path(region, release, data_dir)
        self._ids = None
        self._seen = None

    def _load(self):
        if self._ids is None:
            self._ids = list(load_gz_json(self.path, []))
            self._seen = set(self._ids)
            if self._ids:
                logger.info("Found %d existing matches in %s/%s", len(self._ids), self.region, self.release)
            else:
                logger.info("No existing index for %s/%s", self.region, self.release)
        return self._seen

    def __len__(self):
        return len(self._load())

    def __contains__(self, match_id):
        return match_id in self._load()

    def contains_any(self, ids) -> set:
        seen = self._load()
        return {mid for mid in ids if mid in seen}

    def filter_new(self, ids) -> list:
        seen = self._load()
        return [mid for mid in ids if mid not in seen]

    def merge(self, new_ids) -> int:
        """Union new_ids into the index and persist it. Returns how many were added."""
        seen = self._load()
        added = 0
        for mid in new_ids:
            if mid not in seen:
                seen.add(mid)
                self._ids.append(mid)
                added += 1
        if added:
            save_gz_json(self.path, self._ids)
            logger.info("Saved %d match IDs to %s (%d new)", len(self._ids), self.path, added)
        return added


class MatchIndexStore:
    """Per-run cache of MatchIndex objects. A new store always rereads from disk."""

    def __init__(self, data_dir: str = DATA_DIR):
        self.data_dir = data_dir
        self._indexes = {}

    def get(self, region: str, release) -> MatchIndex:
        key = (region.upper(), str(release))
        if key not in self._indexes:
            self._indexes[key] = MatchIndex(region, release, self.data_dir)
        return self._indexes[key]

    def releases(self, region: str) -> list:
        """Releases that have an index file on disk for region, oldest first."""
        region_dir = os.path.join(self.data_dir, region.upper())
        if not os.path.isdir(region_dir):
            return []
        found = []
        for name in os.listdir(region_dir):
            try:
                release = release_from_dir(name)
            except FormatError:
                continue
            if os.path.exists(index_path(region, release, self.data_dir)):
                found.append(release)
        return sorted(found)

    def filter_new(self, region: str, ids, releases) -> list:
        """IDs not indexed under any of the given releases, in input order."""
        ids = list(ids)
        known = set()
        for release in releases:
            known |= self.get(region, release).contains_any(ids)
        return [mid for mid in ids if mid not in known]

    def clear(self):
        self._indexes.clear()
