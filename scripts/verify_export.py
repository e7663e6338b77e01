#!/usr/bin/env python3
"""
Offline Export Verifier

Fetches a binary user export (or reads one from disk), then re-checks every
record's signature locally. Only the export itself is trusted input: each
signature bundle carries the public key that produced it.

Exit status is 0 when every record verifies, 1 when any record fails and 2 when
the export could not be fetched or decoded.

Usage:
    python3 scripts/verify_export.py
    python3 scripts/verify_export.py --url http://localhost:8000
    python3 scripts/verify_export.py --file users.pb --verbose
"""
import sys
import os
import argparse
import logging
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
from dotenv import load_dotenv

load_dotenv()

from backend.core.export.codec import RecordCodecError
from backend.core.signing.pipeline import build_verification_pipeline

logger = logging.getLogger("verify_export")

EXPORT_PATH = "/api/users/export"


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def fetch_export(base_url: str, timeout: float) -> bytes:
    """Download the binary export from a running API."""
    url = base_url.rstrip("/") + EXPORT_PATH
    logger.info(f"Fetching {url}")
    response = httpx.get(url, params={"format": "binary"}, timeout=timeout)
    response.raise_for_status()
    return response.content


def verify_payload(payload: bytes) -> int:
    """
    Verify every record in an export and print a result table.

    Returns:
        Number of records that failed verification
    """
    pipeline = build_verification_pipeline()
    record_list = pipeline.record_codec.decode_list(payload)

    print(f"Export timestamp: {record_list.exported_at or '(none)'}")
    print(f"Records: {len(record_list.records)} (declared total {record_list.total_count})")
    print()
    print(f"{'ID':>6}  {'EMAIL':<40} {'RESULT':<8} REASON")
    print("-" * 80)

    failed = 0
    for record in record_list.records:
        result = pipeline.on_verify_record(record)
        if not result.valid:
            failed += 1
        reason = result.reason.value if result.reason else ""
        print(f"{record.id:>6}  {record.email[:40]:<40} {'OK' if result.valid else 'FAIL':<8} {reason}")
        if result.message and not result.valid:
            logger.debug(f"Record {record.id}: {result.message}")

    print("-" * 80)
    print(f"Verified: {len(record_list.records) - failed}  Failed: {failed}")
    return failed


def main():
    parser = argparse.ArgumentParser(
        description="Verify the signatures in a user export without trusting the server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Fetch from the local API
    python3 scripts/verify_export.py

    # Verify a saved export
    python3 scripts/verify_export.py --file users.pb
        """
    )
    parser.add_argument(
        "--url",
        default=os.getenv("API_URL", "http://localhost:8000"),
        help="API base URL (default: $API_URL or http://localhost:8000)"
    )
    parser.add_argument(
        "--file",
        type=Path,
        help="Read the export from this file instead of the API"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="HTTP timeout in seconds (default: 30)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        if args.file:
            payload = args.file.read_bytes()
        else:
            payload = fetch_export(args.url, args.timeout)
    except (OSError, httpx.HTTPError) as e:
        logger.error(f"Could not load export: {e}")
        return 2

    try:
        failed = verify_payload(payload)
    except RecordCodecError as e:
        logger.error(f"Export is not a valid user list: {e}")
        return 2

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
