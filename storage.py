"""On-disk layout and the gzip-JSON helpers shared by the index and player cache.

Layout under DATA_DIR:
    {region}/players.json.gz
    {region}/{release}/matches.parquet
    {region}/{release}/index.json.gz
"""

import gzip
import json
import os

from config import DATA_DIR, INDEX_FILE, MATCHES_FILE, PLAYERS_FILE


def partition_dir(region, release, data_dir=DATA_DIR) -> str:
    return os.path.join(data_dir, region.upper(), str(release))


def matches_path(region, release, data_dir=DATA_DIR) -> str:
    return os.path.join(partition_dir(region, release, data_dir), MATCHES_FILE)


def index_path(region, release, data_dir=DATA_DIR) -> str:
    return os.path.join(partition_dir(region, release, data_dir), INDEX_FILE)


def players_path(region, data_dir=DATA_DIR) -> str:
    return os.path.join(data_dir, region.upper(), PLAYERS_FILE)


def load_gz_json(path, default):
    if os.path.exists(path):
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return json.load(f)
    return default


def save_gz_json(path, obj):
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    with gzip.open(tmp, "wt", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, separators=(",", ":"))
    os.replace(tmp, path)
