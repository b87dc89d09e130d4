#!/usr/bin/env python3
"""
Scout config seeding script.

Loads scout configs from scout_configs_seed.json and creates them through
the config store, so every entry goes through normal policy validation.

Schema for scout_configs_seed.json:
- {"configs": [ {...}, ... ]}
- Each config object must have: name
- Any other key is a policy field (interval_ms, platforms, keywords,
  min_margin_pct, min_source_price, max_source_price, max_results,
  auto_list, target_platform, exclude_brands, exclude_categories) or
  "enabled". Omitted fields take their defaults.

Configs whose name already exists are skipped.
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError

from arbscout.db.session import AsyncSessionLocal
from arbscout.exceptions import ScoutValidationError
from arbscout.scout.config_store import ScoutConfigStore


async def seed_scout_configs(seed_file: Path):
    """Seed scout configs from a JSON file."""
    if not seed_file.exists():
        print(f"Error: {seed_file} not found")
        sys.exit(1)

    try:
        with open(seed_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {seed_file}: {e}")
        sys.exit(1)

    configs = data.get("configs", []) if isinstance(data, dict) else []
    if not configs:
        print("No scout configs found in seed file")
        return

    print(f"Found {len(configs)} scout configs to seed...")

    store = ScoutConfigStore(AsyncSessionLocal)
    try:
        existing = {c.name for c in await store.list()}
    except SQLAlchemyError as e:
        print(f"\nError: Database connection failed: {e}")
        sys.exit(1)

    added = 0
    skipped = 0
    errors = 0

    for idx, entry in enumerate(configs, 1):
        if not isinstance(entry, dict) or "name" not in entry:
            print(f"  [ERROR] Config {idx}: Missing required field: name")
            errors += 1
            continue

        fields = dict(entry)
        name = fields.pop("name")
        if name in existing:
            print(f"  [SKIP] {name} (already exists)")
            skipped += 1
            continue

        try:
            config = await store.create(name, fields)
        except ScoutValidationError as e:
            print(f"  [ERROR] Config {idx} ({name}): {e}")
            errors += 1
            continue

        existing.add(config.name)
        print(f"  [ADD] {config.name} ({config.id})")
        added += 1

    print(f"\nSeeding complete!")
    print(f"  - Added: {added}")
    print(f"  - Skipped: {skipped}")
    if errors > 0:
        print(f"  - Errors: {errors}")


async def list_scout_configs():
    """List all stored scout configs."""
    store = ScoutConfigStore(AsyncSessionLocal)
    configs = await store.list()

    if not configs:
        print("No scout configs found.")
        return

    print(f"\nStored Scout Configs ({len(configs)} total):\n")
    for config in configs:
        status = "[ON]" if config.enabled else "[OFF]"
        policy = config.policy
        print(
            f"  {status} {config.name} "
            f"(every {policy.interval_ms // 1000}s, >= {policy.min_margin_pct}%, "
            f"{config.total_runs} runs, {config.total_opportunities_found} found)"
        )


if __name__ == "__main__":
    default_file = Path(__file__).parent.parent / "scout_configs_seed.json"
    if len(sys.argv) > 1:
        if sys.argv[1] == "--list":
            asyncio.run(list_scout_configs())
        elif sys.argv[1] == "--help":
            print("Usage: python seed_scout_configs.py [OPTIONS | SEED_FILE]")
            print("")
            print("Options:")
            print("  --list      List all stored scout configs")
            print("  --help      Show this help message")
            print("")
            print("With no options, seeds configs from scout_configs_seed.json")
        else:
            asyncio.run(seed_scout_configs(Path(sys.argv[1])))
    else:
        asyncio.run(seed_scout_configs(default_file))
