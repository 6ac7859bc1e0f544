"""Collect new TFT matches for every region and store them per release.

Flow per run:
  1. download existing partitions/indexes/players from S3
  2. work out the target release (explicit, calendar, or detected from JP1)
  3. per region: match IDs for cached players -> drop IDs already indexed ->
     fetch details -> group by release -> merge into Parquet -> update index
  4. upload the files that changed
"""

import asyncio
import logging
import math
import signal
import sys
import threading
from dataclasses import dataclass, field
from datetime import date
from functools import partial
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError

from config import (
    DATA_DIR, DEFAULT_MAX_MATCHES, DEFAULT_REGIONS, DETECTION_REGION, LADDER_TIERS, MATCH_DETAIL_API_RATE_LIMIT,
    MATCH_LIST_API_RATE_LIMIT, MATCH_LIST_COUNT, REQUEST_BUFFER_RATE, TIERS, get_api_key, setup_logging,
)
from errors import FatalError, NoDataError
from flow_fetch import fetch_many
from match_index import MatchIndexStore
from match_store import match_id_of, merge_and_save
from patch import active_release, detect_active_release, group_by_release, release_from_dir, release_of
from players import PlayerCache
from riot_api import RiotClient
from storage import index_path, matches_path

logger = logging.getLogger(__name__)

# roughly how many new matches one player's history yields
MATCHES_PER_PLAYER = 20


@dataclass
class CollectStrategy:
    """How to list keys per player, fetch one item, and file it under a partition."""
    list_keys: Callable
    fetch_item: Callable
    classify: Callable = release_of
    item_id: Callable = match_id_of
    list_rate: float = MATCH_LIST_API_RATE_LIMIT
    item_rate: float = MATCH_DETAIL_API_RATE_LIMIT
    buffer_fraction: float = REQUEST_BUFFER_RATE


def match_strategy(client, region: str, count: int = MATCH_LIST_COUNT, start_time: int | None = None) -> CollectStrategy:
    return CollectStrategy(
        list_keys=partial(client.list_match_ids, region=region, count=count, start_time=start_time),
        fetch_item=partial(client.get_match, region=region),
    )


@dataclass
class RegionResult:
    region: str
    players: int = 0
    ids_found: int = 0
    ids_new: int = 0
    fetched: int = 0
    saved: dict = field(default_factory=dict)  # release -> new matches stored
    changed_paths: list = field(default_factory=list)


@dataclass
class CollectionSummary:
    release: object
    results: list = field(default_factory=list)
    failed_regions: list = field(default_factory=list)
    uploaded: list = field(default_factory=list)

    @property
    def total_saved(self) -> int:
        return sum(sum(r.saved.values()) for r in self.results)


async def collect_region(region, strategy: CollectStrategy, players: PlayerCache, indexes: MatchIndexStore,
                         target_release, tiers=TIERS, max_matches=None, only_target=False,
                         data_dir=DATA_DIR, fetch_options=None) -> RegionResult:
    fetch_options = fetch_options or {}
    result = RegionResult(region)
    logger.info("Collecting matches from %s (release: %s)...", region, target_release)

    puuids = players.puuids_for(region, tiers)
    if max_matches:
        limit = min(len(puuids), math.ceil(max_matches / MATCHES_PER_PLAYER))
        if limit < len(puuids):
            logger.info("Limited to %d players due to match limit", limit)
        puuids = puuids[:limit]
    result.players = len(puuids)
    if not puuids:
        logger.warning("No cached players for %s; run collect_players.py first", region)
        return result

    id_lists = await fetch_many(puuids, strategy.list_keys, strategy.list_rate, strategy.buffer_fraction,
                                **fetch_options)
    all_ids = list(dict.fromkeys(mid for ids in id_lists for mid in ids))
    result.ids_found = len(all_ids)

    # any release already holding an id means it was fetched before
    if only_target:
        known_releases = [target_release]
    else:
        known_releases = sorted(set(indexes.releases(region)) | {target_release})
    new_ids = await asyncio.to_thread(indexes.filter_new, region, all_ids, known_releases)
    if max_matches:
        new_ids = new_ids[:max_matches]
    result.ids_new = len(new_ids)
    logger.info("%s: %d new match IDs to fetch (%d already indexed under %s)",
                region, len(new_ids), len(all_ids) - len(new_ids), ", ".join(map(str, known_releases)))
    if not new_ids:
        return result

    records = await fetch_many(new_ids, strategy.fetch_item, strategy.item_rate, strategy.buffer_fraction,
                               **fetch_options)
    result.fetched = len(records)

    groups = group_by_release(records, strategy.classify)
    if only_target:
        dropped = sum(len(v) for k, v in groups.items() if k != target_release)
        if dropped:
            logger.info("%s: dropping %d matches not on %s", region, dropped, target_release)
        groups = {k: v for k, v in groups.items() if k == target_release}

    for release, group in sorted(groups.items()):
        by_id = {strategy.item_id(r): r for r in group}
        index = indexes.get(region, release)
        fresh_ids = await asyncio.to_thread(index.filter_new, list(by_id))
        if not fresh_ids:
            logger.info("%s/%s: no new matches", region, release)
            continue

        await asyncio.to_thread(merge_and_save, region, release, [by_id[i] for i in fresh_ids], data_dir,
                                strategy.classify)
        await asyncio.to_thread(index.merge, fresh_ids)
        result.saved[release] = len(fresh_ids)
        result.changed_paths += [matches_path(region, release, data_dir), index_path(region, release, data_dir)]
        logger.info("%s/%s: saved %d new matches", region, release, len(fresh_ids))

    return result


async def resolve_target_release(client, players: PlayerCache, release=None, use_calendar=False,
                                 fetch_options=None):
    if release is not None:
        return release if not isinstance(release, str) else release_from_dir(release)
    if use_calendar:
        return active_release(date.today())
    sample = players.puuids_for(DETECTION_REGION, LADDER_TIERS)
    try:
        return await detect_active_release(sample, client, **(fetch_options or {}))
    except NoDataError as e:
        logger.warning("Release detection failed (%s); falling back to the release calendar", e)
        return active_release(date.today())


async def collect_all_regions(client, regions=DEFAULT_REGIONS, tiers=TIERS, release=None, use_calendar=False,
                              max_matches=None, only_target=False, sync=None, skip_download=False,
                              skip_upload=False, data_dir=DATA_DIR, strategy_factory=match_strategy,
                              stop=None, fetch_options=None) -> CollectionSummary:
    """Run one collection pass. A failing region is logged and skipped."""
    fetch_options = dict(fetch_options or {})
    if stop is not None:
        fetch_options.setdefault("stop", stop)

    players = PlayerCache(data_dir)
    indexes = MatchIndexStore(data_dir)
    try:
        if sync is not None and not skip_download:
            try:
                sync.download(release=release)
            except (BotoCoreError, ClientError) as e:
                logger.warning("Failed to download from S3 (may be first run): %s", e)
        elif skip_download:
            logger.warning("Skipping S3 download")

        target = await resolve_target_release(client, players, release, use_calendar, fetch_options)
        summary = CollectionSummary(target)

        for region in regions:
            if stop is not None and stop.is_set():
                logger.warning("Stop requested; skipping remaining regions")
                break
            try:
                result = await collect_region(
                    region, strategy_factory(client, region), players, indexes, target,
                    tiers=tiers, max_matches=max_matches, only_target=only_target,
                    data_dir=data_dir, fetch_options=fetch_options,
                )
            except Exception:
                logger.exception("Error collecting from %s", region)
                summary.failed_regions.append(region)
                continue
            summary.results.append(result)
            logger.info("Completed %s", region)

        changed = [p for r in summary.results for p in r.changed_paths]
        if sync is not None and not skip_upload:
            if changed:
                summary.uploaded = sync.upload_changed(changed)
            else:
                logger.info("Nothing changed; skipping S3 upload")
        elif skip_upload:
            logger.warning("Skipping S3 upload")

        logger.info("Collected %d new matches for %s (%d regions failed)",
                    summary.total_saved, target, len(summary.failed_regions))
        return summary
    finally:
        players.clear()
        indexes.clear()


def install_stop_handler(stop: threading.Event):
    def handler(signum, frame):
        if stop.is_set():
            raise KeyboardInterrupt
        logger.warning("Interrupt received: finishing the current slice, press Ctrl+C again to abort")
        stop.set()

    signal.signal(signal.SIGINT, handler)


def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description="Collect TFT matches into per-release Parquet partitions")
    parser.add_argument("--regions", help="comma separated platform codes, e.g. JP1,NA1")
    parser.add_argument("--max-matches", type=int, default=DEFAULT_MAX_MATCHES)
    parser.add_argument("--release", help="target release, e.g. 15.16 (skips detection)")
    parser.add_argument("--use-calendar", action="store_true", help="pick the release from the date table")
    parser.add_argument("--only-target", action="store_true", help="store only matches on the target release")
    parser.add_argument("--start-time", type=int, help="only list matches after this epoch second")
    parser.add_argument("--skip-download", action="store_true")
    parser.add_argument("--skip-upload", action="store_true")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    try:
        api_key = get_api_key()
    except FatalError as e:
        logger.error("%s", e)
        return 1

    regions = [r.strip().upper() for r in args.regions.split(",")] if args.regions else DEFAULT_REGIONS
    logger.info("Regions: %s", ", ".join(regions))
    logger.info("Max matches per region: %d", args.max_matches)

    sync = None
    if not (args.skip_download and args.skip_upload):
        from sync_s3 import S3Sync
        sync = S3Sync()

    stop = threading.Event()
    install_stop_handler(stop)

    client = RiotClient(api_key)
    summary = asyncio.run(collect_all_regions(
        client,
        regions=regions,
        release=args.release,
        use_calendar=args.use_calendar,
        max_matches=args.max_matches,
        only_target=args.only_target,
        sync=sync,
        skip_download=args.skip_download,
        skip_upload=args.skip_upload,
        strategy_factory=partial(match_strategy, start_time=args.start_time),
        stop=stop,
    ))
    print(f"Done! {summary.total_saved} new matches on {summary.release}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
