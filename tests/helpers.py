"""Shared test factories and fakes.

make_match builds a Riot MatchTFTDTO-shaped dict; FakeRiotClient stands in
for riot_api.RiotClient with canned match lists and details.
"""

import copy
import threading

from errors import NotFoundError

DEFAULT_VERSION = "Linux Version 15.16.571.9876 (Aug 12 2025/18:05:26) [PUBLIC]"


def make_match(match_id="JP1_1000", game_version=DEFAULT_VERSION, placement_a=1, **info_overrides):
    """Build a valid match record. Override any info field via kwargs."""
    info = {
        "game_datetime": 1755000000123,
        "game_length": 2103.5,
        "game_version": game_version,
        "queue_id": 1100,
        "tft_set_number": 15,
        "participants": [
            {
                "puuid": "puuid-a",
                "placement": placement_a,
                "level": 9,
                "gold_left": 3,
                "traits": [
                    {"name": "TFT15_Mentor", "num_units": 4, "style": 3, "tier_current": 2, "tier_total": 2},
                ],
                "units": [
                    {"character_id": "TFT15_Ahri", "itemNames": ["TFT_Item_BlueBuff"], "rarity": 4, "tier": 2},
                ],
            },
            {
                "puuid": "puuid-b",
                "placement": 8,
                "level": 7,
                "gold_left": 0,
                "traits": [
                    {"name": "TFT15_Bastion", "num_units": 2, "style": 1, "tier_current": 1, "tier_total": 3},
                ],
                "units": [
                    {"character_id": "TFT15_Garen", "itemNames": ["TFT_Item_Warmogs"], "rarity": 0, "tier": 3},
                ],
            },
        ],
    }
    info.update(info_overrides)
    return {
        "metadata": {"match_id": match_id, "participants": ["puuid-a", "puuid-b"]},
        "info": info,
    }


async def no_sleep(_seconds):
    return None


class FakeRiotClient:
    """Canned responses keyed by puuid / match id. Unknown keys are 404s."""

    def __init__(self, match_ids_by_puuid=None, matches=None, leagues=None):
        self.match_ids_by_puuid = match_ids_by_puuid or {}
        self.matches = matches or {}
        self.leagues = leagues or {}
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, name, key):
        with self._lock:
            self.calls.append((name, key))

    def fetched(self, name):
        return [key for n, key in self.calls if n == name]

    def list_match_ids(self, puuid, region, count=100, start_time=None):
        self._record("list", puuid)
        if puuid not in self.match_ids_by_puuid:
            raise NotFoundError(puuid)
        return list(self.match_ids_by_puuid[puuid])[:count]

    def get_match(self, match_id, region):
        self._record("get", match_id)
        if match_id not in self.matches:
            raise NotFoundError(match_id)
        return copy.deepcopy(self.matches[match_id])

    def get_league(self, region, tier):
        self._record("league", (region, tier))
        return list(self.leagues.get((region, tier), []))


class FakeSync:
    def __init__(self):
        self.downloads = []
        self.uploaded = []

    def download(self, release=None, players_only=False):
        self.downloads.append((release, players_only))
        return []

    def upload_changed(self, paths):
        self.uploaded.extend(sorted(set(paths)))
        return list(self.uploaded)
