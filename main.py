#!/usr/bin/env python3
"""BPDM Gate -> Pool Sync CLI.

Runs a single sync pass: reads business partner changes from the BPDM Gate,
shares them with the BPDM Pool and writes the outcome of every record back
into the Gate's sharing-state ledger.

Architecture:
    - BPDMClient is the shared HTTP layer for Gate and Pool calls
    - TokenManager handles the OAuth2 client credentials flow (optional)
    - SyncBusinessPartnersUseCase orchestrates the pass
    - The checkpoint lives in PostgreSQL when DATABASE_URL is set

Environment Variables Required:
    - BPDM_GATE_URL: Gate base URL
    - BPDM_POOL_URL: Pool base URL
    - BPDM_CLIENT_ID, BPDM_CLIENT_SECRET, BPDM_TOKEN_URL: OAuth2 (optional)
    - DATABASE_URL: PostgreSQL connection string (optional)

Example Usage:
    $ python main.py                 # Sync changes since the last pass
    $ python main.py --full          # Ignore the checkpoint once
    $ python main.py --json          # Print the result as JSON
"""
import argparse
import asyncio
import json
import logging
import sys

from src.bpdm.api.exceptions import BPDMError
from src.bpdm.bridge import open_bridge
from src.bpdm.config import BridgeConfig
from src.bpdm.sync.domain.entities import SyncResult

logger = logging.getLogger(__name__)


def print_summary(result: SyncResult) -> None:
    """Print a per-type table of the pass statistics."""
    print("\n" + "=" * 60)
    print("SYNC COMPLETE")
    print("=" * 60)
    print(f"{'Type':<14} {'Changed':>8} {'Fetched':>8} {'Created':>8} {'Updated':>8} {'Errors':>7} {'Skipped':>8}")
    print("-" * 70)
    for lsa_type, stats in result.statistics.items():
        print(
            f"{lsa_type.value:<14} {stats.changed:>8} {stats.fetched:>8} "
            f"{stats.created:>8} {stats.updated:>8} {stats.errors:>7} {len(stats.skipped):>8}"
        )
    if result.duration_seconds is not None:
        print(f"\n[Main] Completed in {result.duration_seconds:.1f} seconds")


async def run_sync(args: argparse.Namespace) -> int:
    """Run one pass and report it.

    Returns:
        Process exit code
    """
    try:
        config = BridgeConfig.from_env()
    except BPDMError as e:
        print(f"[Main] Configuration error: {e}")
        return 1

    try:
        async with open_bridge(config) as bridge:
            result = await bridge.run_pass(full_resync=args.full)
    except BPDMError as e:
        logger.error(f"Sync failed: {type(e).__name__}: {e}", exc_info=args.verbose)
        if args.json:
            print(json.dumps({"success": False, "error": e.to_dict()}, indent=2))
        return 1

    if args.json:
        print(json.dumps({"success": True, **result.to_dict()}, indent=2))
    else:
        print_summary(result)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Share business partner changes from the BPDM Gate with the BPDM Pool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py              # Sync changes since the last pass
  python main.py --full       # Re-read the whole Gate changelog
  python main.py --json       # Machine-readable result
        """
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Ignore the stored checkpoint and read the whole changelog"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the sync result as JSON"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )

    sys.exit(asyncio.run(run_sync(args)))


if __name__ == "__main__":
    main()
