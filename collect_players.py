"""Refresh {region}/players.json.gz from the challenger/grandmaster/master ladders."""

import asyncio
import logging
import sys

from botocore.exceptions import BotoCoreError, ClientError

from config import DATA_DIR, DEFAULT_REGIONS, LADDER_TIERS, get_api_key, setup_logging
from errors import FatalError
from players import PlayerCache, collect_players
from riot_api import RiotClient
from storage import players_path

logger = logging.getLogger(__name__)


async def collect_players_from_all_regions(client, regions=DEFAULT_REGIONS, tiers=LADDER_TIERS, sync=None,
                                           skip_download=False, skip_upload=False, data_dir=DATA_DIR,
                                           fetch_options=None) -> int:
    cache = PlayerCache(data_dir)
    changed = []
    total = 0
    try:
        if sync is not None and not skip_download:
            try:
                sync.download(players_only=True)
            except (BotoCoreError, ClientError) as e:
                logger.warning("Failed to download players from S3 (may be first run): %s", e)

        for region in regions:
            try:
                added = await collect_players(client, cache, region, tiers, **(fetch_options or {}))
            except Exception:
                logger.exception("Error processing %s", region)
                continue
            total += added
            if added:
                changed.append(players_path(region, data_dir))

        if sync is not None and not skip_upload and changed:
            sync.upload_changed(changed)

        logger.info("Total new players collected: %d", total)
        return total
    finally:
        cache.clear()


def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description="Collect top ladder players per region")
    parser.add_argument("--regions", help="comma separated platform codes, e.g. JP1,NA1")
    parser.add_argument("--skip-download", action="store_true")
    parser.add_argument("--skip-upload", action="store_true")
    args = parser.parse_args(argv)

    setup_logging()
    try:
        api_key = get_api_key()
    except FatalError as e:
        logger.error("%s", e)
        return 1

    regions = [r.strip().upper() for r in args.regions.split(",")] if args.regions else DEFAULT_REGIONS

    sync = None
    if not (args.skip_download and args.skip_upload):
        from sync_s3 import S3Sync
        sync = S3Sync()

    total = asyncio.run(collect_players_from_all_regions(
        RiotClient(api_key), regions, sync=sync,
        skip_download=args.skip_download, skip_upload=args.skip_upload,
    ))
    print(f"Done! {total} new players")
    return 0


if __name__ == "__main__":
    sys.exit(main())
