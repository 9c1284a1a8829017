"""Reconcile stored vote tallies with the votes table.

Tallies are always recomputed from vote rows when a vote changes, so drift
only appears after manual edits or restores. This script finds and fixes it.

Usage:
    cd backend
    python recompute_scores.py

    # Preview without writing:
    python recompute_scores.py --dry-run

    # Only one competition week:
    python recompute_scores.py --week 2024-W01
"""

import argparse
import asyncio
import sys
import time
from typing import Optional

from launchspace.core.weeks import is_valid_week_id
from launchspace.db.session import async_session_factory
from launchspace.services.vote_service import VoteService


async def recompute_all(dry_run: bool = False, week: Optional[str] = None) -> int:
    """Fix drifted tallies and print a report. Returns the number of drifted apps."""
    print("=" * 70)
    print("Launch Space - Vote tally reconciliation")
    print(f"Mode       : {'DRY RUN (no DB writes)' if dry_run else 'LIVE (writing to DB)'}")
    print(f"Week filter: {week or 'all weeks'}")
    print("=" * 70)

    start_time = time.monotonic()

    async with async_session_factory() as session:
        try:
            drift = await VoteService(session).reconcile(launch_week=week, dry_run=dry_run)
            if not dry_run:
                await session.commit()
        except Exception:
            await session.rollback()
            raise

    for entry in drift:
        up, down, score = entry["stored"]
        real_up, real_down, real_score = entry["actual"]
        print(
            f"{entry['slug'][:40]:40s}  "
            f"stored {up:4d}/{down:4d} ({score:7.1f})  "
            f"actual {real_up:4d}/{real_down:4d} ({real_score:7.1f})"
        )

    print()
    print(f"Drifted apps : {len(drift)}")
    print(f"Time elapsed : {time.monotonic() - start_time:.1f}s")
    if dry_run and drift:
        print("[DRY RUN] No changes were written to the database.")
    return len(drift)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Recompute upvotes, downvotes and ranking_score from the votes table.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Report drift but do NOT write to the database.",
    )
    parser.add_argument(
        "--week",
        type=str,
        default=None,
        metavar="WEEK_ID",
        help="Only reconcile submissions of this launch week (e.g. '2024-W01').",
    )
    args = parser.parse_args()

    if args.week and not is_valid_week_id(args.week):
        parser.error(f"invalid week id '{args.week}', expected YYYY-W##")

    drifted = asyncio.run(recompute_all(dry_run=args.dry_run, week=args.week))
    sys.exit(1 if drifted and args.dry_run else 0)


if __name__ == "__main__":
    main()
