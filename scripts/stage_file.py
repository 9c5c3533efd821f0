from __future__ import annotations

import argparse
import asyncio
import json
import logging

from prospect_pipeline.db import AsyncSessionLocal, engine
from prospect_pipeline.models import Base
from prospect_pipeline.service_layer.intake import stage_raw_records
from prospect_pipeline.service_layer.unit_of_work import uow_factory


async def _ensure_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Stage raw prospect records from a JSON file")
    parser.add_argument("path", help="JSON file holding a list of objects")
    parser.add_argument("--source", required=True, help="Provenance tag, e.g. csv_import")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

    with open(args.path, encoding="utf-8") as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise SystemExit("expected a JSON list of records")

    await _ensure_schema()
    ids = await stage_raw_records(uow_factory(AsyncSessionLocal), records, args.source)
    print(f"Staged {len(ids)} record(s) from {args.path} as source={args.source}")


if __name__ == "__main__":
    asyncio.run(main())
