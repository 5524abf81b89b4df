"""Deploy-time probe: make sure the storage volume is mounted and usable."""
from __future__ import annotations

import asyncio
import json
import logging
import os
import sys

from api.services.storage import LocalFileStore, store_from_env

LOG = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(asctime)s [%(levelname)s] %(message)s")


async def run_check(store: LocalFileStore) -> bool:
    ok = await store.check_storage()
    if ok:
        LOG.info("Storage check passed for %s", store.base_path)
    else:
        LOG.error("Storage check failed for %s", store.base_path)
    return ok


def main() -> int:
    setup_logging(os.getenv("LOG_LEVEL", "INFO").upper())
    store = store_from_env()
    ok = asyncio.run(run_check(store))
    print(json.dumps(store.describe(), indent=2))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
