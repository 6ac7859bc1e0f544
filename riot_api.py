import logging

import requests

from config import MATCH_LIST_COUNT, REGION_ROUTING, REQUEST_TIMEOUT
from errors import FatalError, NotFoundError, TransientError

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUSES = (420, 429)


def routing_for(region: str) -> str:
    try:
        return REGION_ROUTING[region.upper()]
    except KeyError:
        raise ValueError(f"Unknown region: {region}") from None


def regional_host(region: str) -> str:
    return f"https://{routing_for(region)}.api.riotgames.com"


def platform_host(region: str) -> str:
    return f"https://{region.lower()}.api.riotgames.com"


def _retry_after(r: requests.Response) -> float | None:
    value = r.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class RiotClient:
    """Thin blocking wrapper around the TFT endpoints.

    Every call makes exactly one HTTP request; retrying and pacing are the
    caller's job (see flow_fetch.fetch_many).
    """

    def __init__(self, api_key: str, session: requests.Session | None = None, timeout: float = REQUEST_TIMEOUT):
        self.session = session or requests.Session()
        self.session.headers.update({"X-Riot-Token": api_key})
        self.timeout = timeout

    def get_json(self, url, params=None):
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            raise TransientError(None, message=f"{type(e).__name__} for {url}") from e

        if r.status_code == 404:
            raise NotFoundError(url)

        if r.status_code in RATE_LIMIT_STATUSES or r.status_code >= 500:
            raise TransientError(r.status_code, _retry_after(r), f"[{r.status_code}] {url}")

        if r.status_code in (401, 403):
            raise FatalError(f"[{r.status_code}] API key rejected for {url}")

        if r.status_code >= 400:
            logger.error("[%s] %s", r.status_code, r.text[:300])
            r.raise_for_status()

        return r.json()

    def list_match_ids(self, puuid: str, region: str, count: int = MATCH_LIST_COUNT, start_time: int | None = None):
        url = f"{regional_host(region)}/tft/match/v1/matches/by-puuid/{puuid}/ids"
        params = {"count": count}
        if start_time is not None:
            params["startTime"] = start_time
        return self.get_json(url, params=params)

    def get_match(self, match_id: str, region: str):
        return self.get_json(f"{regional_host(region)}/tft/match/v1/matches/{match_id}")

    def get_league(self, region: str, tier: str):
        """Return the entries of a challenger/grandmaster/master ladder."""
        data = self.get_json(
            f"{platform_host(region)}/tft/league/v1/{tier.lower()}",
            params={"queue": "RANKED_TFT"},
        )
        return data.get("entries", [])
