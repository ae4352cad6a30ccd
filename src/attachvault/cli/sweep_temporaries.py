"""Delete temporary attachment objects left behind by interrupted batches."""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone

from loguru import logger

from attachvault.domain.naming import TEMPORARY_SUFFIX
from attachvault.infrastructure.attachments.s3_store import S3BlobStore, s3_store_from_settings
from attachvault.infrastructure.settings import get_settings


def find_stale_temporaries(store: S3BlobStore, older_than: timedelta, now: datetime | None = None) -> list[str]:
    cutoff = (now or datetime.now(timezone.utc)) - older_than
    return [key for key, last_modified in store.iter_objects(suffix=TEMPORARY_SUFFIX) if last_modified < cutoff]


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Sweep orphaned temporary attachment objects")
    parser.add_argument(
        "--older-than-hours",
        type=float,
        default=settings.temporary_max_age_hours,
        help=f"Only delete temporaries older than this (default: {settings.temporary_max_age_hours})",
    )
    parser.add_argument("--dry-run", action="store_true", help="List what would be deleted without deleting")
    args = parser.parse_args(argv)

    if args.older_than_hours <= 0:
        parser.error("--older-than-hours must be positive")

    store = s3_store_from_settings(settings)
    stale = find_stale_temporaries(store, timedelta(hours=args.older_than_hours))

    if not stale:
        print(f"No temporaries older than {args.older_than_hours}h in {store.cfg.bucket}")
        return 0

    for key in stale:
        print(key)

    if args.dry_run:
        print(f"{len(stale)} temporaries would be deleted (dry run)")
        return 0

    store.delete_many(stale)
    logger.info(f"Deleted {len(stale)} stale temporaries from {store.cfg.bucket}")
    print(f"Deleted {len(stale)} temporaries")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
