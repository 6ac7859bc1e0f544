import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from functools import partial

from config import (
    DETECTION_BUFFER_RATE, DETECTION_MATCH_LIMIT, DETECTION_REGION, DETECTION_SAMPLE_SIZE,
    MATCH_DETAIL_API_RATE_LIMIT, MATCH_LIST_API_RATE_LIMIT, RELEASE_WINDOWS,
)
from errors import FormatError, NoDataError
from flow_fetch import fetch_many

logger = logging.getLogger(__name__)

# Handles both shapes the API returns:
#   "Linux Version 15.14.697.2104 (May 30 2024/09:53:23) [PUBLIC]"
#   "15.16.571.9876"
GAME_VERSION_PATTERN = re.compile(r"(?:Version )?(\d+)\.(\d+)\.(\d+)\.(\d+)")
RELEASE_DIR_PATTERN = re.compile(r"^(\d+)\.(\d+)$")


@dataclass(frozen=True, order=True)
class Release:
    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


def parse_release(game_version: str) -> Release:
    """'Version 15.14.697.2104 ...' -> Release(15, 14). Build/revision are dropped."""
    m = GAME_VERSION_PATTERN.search(game_version or "")
    if not m:
        raise FormatError(f"Invalid game version format: {game_version!r}")
    return Release(int(m.group(1)), int(m.group(2)))


def release_from_dir(name: str) -> Release:
    """Parse the canonical '15.16' form used for partition directories."""
    m = RELEASE_DIR_PATTERN.match(name.strip())
    if not m:
        raise FormatError(f"Invalid release: {name!r}")
    return Release(int(m.group(1)), int(m.group(2)))


def release_of(match: dict) -> Release:
    game_version = match.get("info", {}).get("game_version")
    if not isinstance(game_version, str):
        raise FormatError(f"Match has no game_version: {match.get('metadata', {}).get('match_id')}")
    return parse_release(game_version)


def group_by_release(matches, classify=release_of) -> dict:
    """Bucket matches by the release they were played on. Unparsable ones are skipped."""
    groups = defaultdict(list)
    for match in matches:
        try:
            groups[classify(match)].append(match)
        except FormatError as e:
            logger.warning("Skipping match: %s", e)
    return dict(groups)


def active_release(today: date, windows=RELEASE_WINDOWS) -> Release:
    """Release whose start date is the latest one on or before today."""
    current = None
    current_start = None
    for start, name in windows:
        if start <= today and (current_start is None or start > current_start):
            current, current_start = name, start
    if current is None:
        raise NoDataError(f"No release window starts on or before {today.isoformat()}")
    return release_from_dir(current)


async def detect_active_release(sample_puuids, client, region=DETECTION_REGION,
                                sample_size=DETECTION_SAMPLE_SIZE, match_limit=DETECTION_MATCH_LIMIT,
                                **fetch_kwargs) -> Release:
    """Find the newest release being played by recently active top players.

    Releases are not announced through the API, so the most recent match of
    each sampled player is looked up and the highest release seen wins.
    """
    sample = list(sample_puuids)[:sample_size]
    logger.info("Detecting latest release: sampling %d players from %s", len(sample), region)

    id_lists = await fetch_many(
        sample, partial(client.list_match_ids, region=region, count=1),
        MATCH_LIST_API_RATE_LIMIT, DETECTION_BUFFER_RATE, **fetch_kwargs,
    )
    match_ids = list(dict.fromkeys(mid for ids in id_lists for mid in ids))[:match_limit]
    logger.info("Fetched %d match IDs for release detection", len(match_ids))

    matches = await fetch_many(
        match_ids, partial(client.get_match, region=region),
        MATCH_DETAIL_API_RATE_LIMIT, DETECTION_BUFFER_RATE, **fetch_kwargs,
    )

    releases = []
    for match in matches:
        try:
            releases.append(release_of(match))
        except FormatError as e:
            logger.debug("Ignoring match during detection: %s", e)

    if not releases:
        raise NoDataError(f"No parsable matches sampled from {region}")

    latest = max(releases)
    logger.info("Detected latest release: %s (%d matches sampled)", latest, len(releases))
    return latest
