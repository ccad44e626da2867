#!/usr/bin/env python3
"""Initialise the MediPlan store once and print what it contains."""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from mediplan.config import StoreSettings, get_settings
from mediplan.demo_data import demo_seed, empty_seed
from mediplan.logging_config import configure_logging
from mediplan.scheduler import ManualScheduler
from mediplan.storage import MemoryBackend, PersistenceAdapter
from mediplan.store import ClinicStore


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Seed the MediPlan store on first use and summarise its collections.",
    )
    parser.add_argument(
        "--database-url",
        default=os.getenv("MEDIPLAN_DATABASE_URL"),
        help="SQLAlchemy URL of the key-value backend (default: configured store)",
    )
    parser.add_argument(
        "--empty",
        action="store_true",
        help="Seed an empty cabinet instead of the demo dataset.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use an in-memory backend; nothing is written to disk.",
    )
    return parser.parse_args(argv)


def build_store(args: argparse.Namespace) -> ClinicStore:
    settings = get_settings()
    if args.database_url:
        settings = StoreSettings(
            url=args.database_url,
            storage_prefix=settings.storage_prefix,
            log_level=settings.log_level,
            json_logs=settings.json_logs,
        )
    seed = empty_seed() if args.empty else demo_seed()
    scheduler = ManualScheduler()
    if args.dry_run:
        adapter = PersistenceAdapter(MemoryBackend(), prefix=settings.storage_prefix)
        return ClinicStore(adapter, scheduler=scheduler, settings=settings, seed=seed).load()
    return ClinicStore.from_settings(settings, scheduler=scheduler, seed=seed)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=False)

    store = build_store(args)
    try:
        target = "memory (dry run)" if args.dry_run else (args.database_url or settings.url)
        print(f"Store ready at {target} (prefix {store.adapter.prefix!r})")
        print(f"  patients:        {len(store.patients)}")
        print(f"  appointments:    {len(store.appointments)}")
        print(f"  medical records: {len(store.medical_records)}")
        print(f"  invoices:        {len(store.invoices)}")
        print(f"  users:           {len(store.users)}")
        for user in store.list_users():
            print(f"    - {user.get('email')} ({user.get('role')})")
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
