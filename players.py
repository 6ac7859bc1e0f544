import logging
from dataclasses import dataclass

from config import DATA_DIR, LADDER_TIERS, LEAGUE_API_RATE_LIMIT, REQUEST_BUFFER_RATE
from flow_fetch import fetch_many
from storage import load_gz_json, players_path, save_gz_json

logger = logging.getLogger(__name__)


@dataclass
class PlayerIdentity:
    puuid: str
    tier: str
    summoner_id: str = ""
    division: str | None = None
    league_points: int | None = None

    @classmethod
    def from_dict(cls, d: dict) -> "PlayerIdentity":
        return cls(
            puuid=d["puuid"],
            tier=(d.get("tier") or "").upper(),
            summoner_id=d.get("summonerId") or "",
            division=d.get("division"),
            league_points=d.get("leaguePoints"),
        )

    def to_dict(self) -> dict:
        return {
            "summonerId": self.summoner_id,
            "puuid": self.puuid,
            "tier": self.tier,
            "division": self.division,
            "leaguePoints": self.league_points,
        }


class PlayerCache:
    """Player identities per region, loaded from {region}/players.json.gz.

    Owned by a single collection run and cleared when it ends. Tiers are
    whatever the ladder said when the player was first seen, so they are only
    a hint for picking fetch targets.
    """

    def __init__(self, data_dir: str = DATA_DIR):
        self.data_dir = data_dir
        self._players = {}  # region -> {puuid: PlayerIdentity}

    def _region(self, region: str) -> dict:
        region = region.upper()
        if region not in self._players:
            players = {}
            for raw in load_gz_json(players_path(region, self.data_dir), []):
                if not raw.get("puuid"):
                    continue
                players[raw["puuid"]] = PlayerIdentity.from_dict(raw)
            self._players[region] = players
        return self._players[region]

    def get_all(self, region: str) -> list:
        return list(self._region(region).values())

    def puuids_for(self, region: str, tiers=None) -> list:
        players = self.get_all(region)
        if tiers is None:
            return [p.puuid for p in players]
        wanted = {t.upper() for t in tiers}
        filtered = [p.puuid for p in players if p.tier in wanted]
        if len(filtered) < len(players):
            logger.info("Filtered to %d of %d %s players (cached tier data)", len(filtered), len(players), region)
        return filtered

    def missing(self, region: str, puuids) -> list:
        known = self._region(region)
        return [p for p in puuids if p not in known]

    def upsert(self, region: str, players) -> int:
        known = self._region(region)
        before = len(known)
        for player in players:
            known[player.puuid] = player
        return len(known) - before

    def save(self, region: str) -> str:
        path = players_path(region, self.data_dir)
        players = self.get_all(region)
        save_gz_json(path, [p.to_dict() for p in players])
        logger.info("Saved %d players to %s", len(players), path)
        return path

    def count(self, region: str) -> int:
        return len(self._region(region))

    def clear(self):
        self._players.clear()


async def collect_players(client, cache: PlayerCache, region: str, tiers=LADDER_TIERS, **fetch_kwargs) -> int:
    """Pull the top ladders for a region and add players the cache has not seen.

    Returns the number of new players. The cache is saved when anything changed.
    """
    logger.info("Processing %s...", region)

    def fetch_tier(tier):
        return tier, client.get_league(region, tier)

    ladders = await fetch_many(tiers, fetch_tier, LEAGUE_API_RATE_LIMIT, REQUEST_BUFFER_RATE, **fetch_kwargs)

    new_players = []
    taken = set()  # ladders come top down, so the first tier seen is the highest
    for tier, entries in ladders:
        logger.info("Loaded %d entries from %s", len(entries), tier)
        entries = [e for e in entries if e.get("puuid")]
        missing = set(cache.missing(region, [e["puuid"] for e in entries])) - taken
        logger.info("%d new players (%d already known)", len(missing), len(entries) - len(missing))
        for e in entries:
            if e["puuid"] in missing:
                new_players.append(PlayerIdentity(
                    puuid=e["puuid"],
                    tier=tier.upper(),
                    summoner_id=e.get("summonerId") or "",
                    division=e.get("rank"),
                    league_points=e.get("leaguePoints"),
                ))
                missing.discard(e["puuid"])
                taken.add(e["puuid"])

    added = cache.upsert(region, new_players)
    if added:
        cache.save(region)
    logger.info("Total players in cache for %s: %d", region, cache.count(region))
    return added
