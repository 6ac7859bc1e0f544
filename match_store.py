"""Parquet partitions of raw match records, one file per (region, release).

Nested payloads (metadata, info.participants, traits, units) are written as
native struct/list columns inferred by pyarrow. Nothing goes through an
intermediate JSON string, so integer leaves come back as int64 instead of
escaped text.

Struct columns take the union of the keys seen across a file. A dict that
lacked one of those keys (say one participant without partner_group_id)
reads back with that key set to None; values and types are otherwise kept.
"""

import logging
import os

import pyarrow as pa
import pyarrow.parquet as pq

from config import DATA_DIR
from patch import release_of
from storage import matches_path

logger = logging.getLogger(__name__)

PARQUET_COMPRESSION = "zstd"


def match_id_of(match: dict) -> str:
    try:
        return match["metadata"]["match_id"]
    except (KeyError, TypeError):
        raise ValueError("Match record has no metadata.match_id") from None


def records_to_table(records) -> pa.Table:
    columns = []
    for record in records:
        for key in record:
            if key not in columns:
                columns.append(key)
    return pa.table({key: pa.array([record.get(key) for record in records]) for key in columns})


def read_records(path) -> list:
    return pq.read_table(path).to_pylist()


def write_records(path, records):
    """Write the records as one Parquet file, replacing ``path`` atomically."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    pq.write_table(records_to_table(records), tmp, compression=PARQUET_COMPRESSION)
    os.replace(tmp, path)


def load_partition(region: str, release, data_dir: str = DATA_DIR) -> list:
    path = matches_path(region, release, data_dir)
    if not os.path.exists(path):
        return []
    records = read_records(path)
    logger.info("Loaded %d existing matches from %s", len(records), path)
    return records


def merge_and_save(region: str, release, new_records, data_dir: str = DATA_DIR, classify=release_of) -> int:
    """Merge new_records into the partition keyed by match id; later records win.

    Returns the partition size after the merge. Records that belong to a
    different release (per ``classify``) are refused so a match never lands in
    two partitions.
    """
    new_records = list(new_records)
    if not new_records:
        return len(load_partition(region, release, data_dir))

    for record in new_records:
        played_on = classify(record)
        if str(played_on) != str(release):
            raise ValueError(f"{match_id_of(record)} was played on {played_on}, not {release}")

    merged = {match_id_of(r): r for r in load_partition(region, release, data_dir)}
    before = len(merged)
    for record in new_records:
        merged[match_id_of(record)] = record

    path = matches_path(region, release, data_dir)
    write_records(path, list(merged.values()))
    logger.info("Saved %d matches to %s (%d new)", len(merged), path, len(merged) - before)
    return len(merged)
