import logging
import os
from datetime import date

from dotenv import load_dotenv

from errors import FatalError

load_dotenv()

DATA_DIR = os.getenv("TFT_DATA_DIR", "data/match-data")

MATCHES_FILE = "matches.parquet"
INDEX_FILE = "index.json.gz"
PLAYERS_FILE = "players.json.gz"

# Riot routing: platform code -> regional host group (match-v1 lives on the regional host)
REGION_ROUTING = {
    "BR1": "americas",
    "EUN1": "europe",
    "EUW1": "europe",
    "JP1": "asia",
    "KR": "asia",
    "LA1": "americas",
    "LA2": "americas",
    "NA1": "americas",
    "OC1": "sea",
    "TR1": "europe",
    "RU": "europe",
    "PBE1": "americas",
    "VN2": "sea",
}

DEFAULT_REGIONS = ["JP1", "KR", "EUW1", "NA1", "BR1", "EUN1", "LA1", "LA2", "OC1", "TR1", "VN2"]
DETECTION_REGION = "JP1"

TIERS = ["CHALLENGER", "GRANDMASTER", "MASTER", "DIAMOND"]
LADDER_TIERS = ["challenger", "grandmaster", "master"]

# Rate limits (requests per second, derived from the app key's 10s windows)
LEAGUE_API_RATE_LIMIT = 3      # 270 requests every 1 minute
MATCH_LIST_API_RATE_LIMIT = 60  # 600 requests every 10 seconds
MATCH_DETAIL_API_RATE_LIMIT = 25  # 250 requests every 10 seconds

REQUEST_BUFFER_RATE = 0.9
MAX_RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0
REQUEST_TIMEOUT = 30

MATCH_LIST_COUNT = 100
DETECTION_SAMPLE_SIZE = 200
DETECTION_MATCH_LIMIT = 50
DETECTION_BUFFER_RATE = 0.5  # detection must not eat the collection budget
DEFAULT_MAX_MATCHES = 100_000

# Release calendar, used when dynamic detection is switched off
RELEASE_WINDOWS = [
    (date(2025, 7, 30), "15.15"),
    (date(2025, 8, 13), "15.16"),
    (date(2025, 8, 27), "15.17"),
    (date(2025, 9, 10), "15.18"),
]

S3_BUCKET = os.getenv("TFT_S3_BUCKET", "tftips")
S3_PREFIX = os.getenv("TFT_S3_PREFIX", "match-data/")
S3_REGION = os.getenv("AWS_DEFAULT_REGION", "ap-northeast-1")
SYNC_SUFFIXES = (".parquet", ".json.gz")


def get_api_key() -> str:
    api_key = os.getenv("RIOT_API_KEY")
    if not api_key:
        raise FatalError("Missing RIOT_API_KEY in .env")
    return api_key


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # urllib3 logs every retry/connection at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
