#!/usr/bin/env python3
"""
Seed Demo Experiments Script

Creates the demo experiments described in demo_experiments.yaml so the
CLI and the rotation worker have something to work on locally.
"""

import asyncio
import sys
import uuid
from pathlib import Path
from typing import Dict

import structlog
import yaml

from listab.errors import ListabError
from listab.log_config import configure_logging
from listab.schemas.experiment import ExperimentCreate, HypothesisRequest
from listab.services.database import close_db, get_db_session, init_db
from listab.services.experiment_service import ExperimentService
from listab.services.hypotheses import hypotheses_as_variants

logger = structlog.get_logger()

DEFAULT_FILE = Path(__file__).parent / "demo_experiments.yaml"


def load_experiments(path: Path) -> Dict:
    """Load and validate the demo file."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    experiments = []
    for item in raw.get("experiments", []):
        use_hypotheses = item.pop("hypotheses", False)
        data = ExperimentCreate.model_validate(item)
        if use_hypotheses and not data.variants:
            data.variants = hypotheses_as_variants(HypothesisRequest(
                base_title=data.base_content.title,
                base_description=data.base_content.description,
                base_price=data.base_content.price,
            ))
        experiments.append(data)

    return {
        "owner_id": uuid.UUID(str(raw.get("owner_id", uuid.uuid4()))),
        "experiments": experiments,
    }


async def seed(path: Path, start: bool = False, dry_run: bool = False) -> Dict[str, int]:
    """Create every demo experiment, optionally starting it."""
    results = {"created": 0, "started": 0, "failed": 0}
    demo = load_experiments(path)

    if dry_run:
        for data in demo["experiments"]:
            logger.info("[DRY RUN] Would create experiment", name=data.name, variants=len(data.variants))
        return results

    await init_db()
    try:
        async with get_db_session() as session:
            service = ExperimentService(session)
            for data in demo["experiments"]:
                try:
                    experiment = await service.create_experiment(data, demo["owner_id"])
                    results["created"] += 1
                    if start:
                        await service.start_experiment(experiment.id)
                        results["started"] += 1
                except ListabError as e:
                    results["failed"] += 1
                    logger.error("Failed to seed experiment", name=data.name, error=str(e))
    finally:
        await close_db()

    return results


async def main():
    """Main entry point for the script."""
    import argparse

    parser = argparse.ArgumentParser(description="Seed demo experiments into Listab")
    parser.add_argument("--file", type=Path, default=DEFAULT_FILE, help="YAML file with experiments")
    parser.add_argument("--start", action="store_true", help="Start experiments after creating them")
    parser.add_argument("--dry-run", action="store_true", help="Validate without saving")
    args = parser.parse_args()

    configure_logging()
    logger.info("Seeding demo experiments", file=str(args.file), start=args.start, dry_run=args.dry_run)

    results = await seed(args.file, start=args.start, dry_run=args.dry_run)

    print("\n" + "=" * 50)
    print("Demo Seeding Complete")
    print("=" * 50)
    print(f"Created:  {results['created']}")
    print(f"Started:  {results['started']}")
    print(f"Failed:   {results['failed']}")
    print("=" * 50)

    if results["failed"] > 0:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
