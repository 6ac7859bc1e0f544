"""Mirror DATA_DIR to and from S3.

Keys under the bucket prefix use the same relative layout as DATA_DIR
(JP1/15.16/matches.parquet, JP1/players.json.gz, ...). Uploads overwrite
whole objects, so re-running an interrupted upload is safe.
"""

import logging
import os
import sys

import boto3
from botocore.config import Config

from config import DATA_DIR, PLAYERS_FILE, S3_BUCKET, S3_PREFIX, S3_REGION, SYNC_SUFFIXES, setup_logging

logger = logging.getLogger(__name__)


def make_client(region_name: str = S3_REGION):
    config = Config(
        retries={"max_attempts": 10, "mode": "adaptive"},
        read_timeout=120,
        connect_timeout=10,
    )
    return boto3.client("s3", region_name=region_name, config=config)


def is_sync_file(key: str) -> bool:
    return key.endswith(SYNC_SUFFIXES)


def filter_keys_by_release(keys, release) -> list:
    """Keep player files plus the files of one release directory (JP1/15.16/...)."""
    kept = []
    for key in keys:
        if key.endswith(PLAYERS_FILE):
            kept.append(key)
            continue
        parts = key.split("/")
        if len(parts) >= 3 and parts[1] == str(release):
            kept.append(key)
    return kept


class S3Sync:
    def __init__(self, bucket: str = S3_BUCKET, prefix: str = S3_PREFIX, data_dir: str = DATA_DIR, client=None):
        self.bucket = bucket
        self.prefix = prefix
        self.data_dir = data_dir
        self.client = client or make_client()

    def list_keys(self, sub_prefix: str = "") -> list:
        keys = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix + sub_prefix):
            for obj in page.get("Contents", []):
                key = obj["Key"][len(self.prefix):]
                if key:
                    keys.append(key)
        return keys

    def local_path(self, key: str) -> str:
        return os.path.join(self.data_dir, *key.split("/"))

    def key_for(self, local_path: str) -> str:
        rel = os.path.relpath(local_path, self.data_dir)
        if rel.startswith(".."):
            raise ValueError(f"{local_path} is outside {self.data_dir}")
        return rel.replace(os.sep, "/")

    def download(self, release=None, players_only=False) -> list:
        """Fetch partitions, indexes and player files. Returns the local paths written."""
        keys = [k for k in self.list_keys() if is_sync_file(k)]
        if players_only:
            keys = [k for k in keys if k.endswith(PLAYERS_FILE)]
        elif release is not None:
            keys = filter_keys_by_release(keys, release)
        logger.info("Downloading %d files from s3://%s/%s", len(keys), self.bucket, self.prefix)

        written = []
        for key in keys:
            path = self.local_path(key)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            logger.debug("Downloading %s", key)
            self.client.download_file(self.bucket, self.prefix + key, path)
            written.append(path)
        return written

    def upload(self, local_path: str, key: str | None = None) -> str:
        key = key or self.key_for(local_path)
        logger.debug("Uploading %s", key)
        self.client.upload_file(local_path, self.bucket, self.prefix + key)
        return key

    def upload_changed(self, paths) -> list:
        paths = sorted(set(paths))
        logger.info("Uploading %d changed files to s3://%s/%s", len(paths), self.bucket, self.prefix)
        return [self.upload(p) for p in paths if os.path.exists(p)]

    def local_files(self) -> list:
        found = []
        for root, _dirs, files in os.walk(self.data_dir):
            for name in files:
                if is_sync_file(name):
                    found.append(os.path.join(root, name))
        return sorted(found)


def main():
    import argparse
    parser = argparse.ArgumentParser(description="Sync match data with S3")
    parser.add_argument("command", choices=["download", "upload", "status"], nargs="?", default="download")
    parser.add_argument("--release", help="only download files for this release, e.g. 15.16")
    args = parser.parse_args()

    setup_logging()
    sync = S3Sync()

    if args.command == "download":
        sync.download(release=args.release)
    elif args.command == "upload":
        sync.upload_changed(sync.local_files())
    else:
        remote = sync.list_keys()
        local = sync.local_files()
        print(f"S3 files: {len(remote)}")
        print(f"Local files: {len(local)}")
        for key in remote[-10:]:
            print(f"  - {key}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
