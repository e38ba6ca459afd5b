"""Command line entry point.

Usage:
    deal-transfer <SOURCE_DEAL_ID> [TARGET_CATEGORY_ID]
    deal-transfer --poll [TARGET_CATEGORY_ID]

Settings come from the environment or a .env file (BITRIX_WEBHOOK_URL,
TARGET_CATEGORY_ID, ...).
"""

import argparse
import asyncio
import sys

from deal_transfer.config import get_settings
from deal_transfer.core.exceptions import ConfigurationError, TransferError
from deal_transfer.core.logging import configure_logging, get_logger
from deal_transfer.domain.entities import TransferResult
from deal_transfer.domain.services.transfer_service import TransferService

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deal-transfer",
        description="Copy a Bitrix24 deal with its tasks and activities into another pipeline",
    )
    parser.add_argument("source_deal_id", nargs="?", help="ID of the deal to copy")
    parser.add_argument(
        "target_category_id",
        nargs="?",
        help="Target pipeline ID (default: TARGET_CATEGORY_ID)",
    )
    parser.add_argument(
        "--poll",
        action="store_true",
        help="Copy the newest deal of POLL_SOURCE_CATEGORY_ID unless already copied",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser


def parse_category(value: str | None) -> int | None:
    """Category id from the command line, or None when omitted.

    Raises:
        TransferError: value is not an integer
    """
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise TransferError(f"Invalid target category: {value!r}") from None


async def run(args: argparse.Namespace) -> TransferResult | None:
    service = TransferService()
    if args.poll:
        # With --poll the single positional is the target category
        raw_target = args.target_category_id
        if raw_target is None:
            raw_target = args.source_deal_id
        return await service.transfer_latest(target_category_id=parse_category(raw_target))
    return await service.transfer_deal(
        args.source_deal_id, parse_category(args.target_category_id)
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.source_deal_id and not args.poll:
        parser.print_usage()
        return 0

    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1

    configure_logging(level=args.log_level or settings.log_level)

    try:
        result = asyncio.run(run(args))
    except Exception as e:
        logger.error("Transfer failed", error=str(e), exc_info=True)
        return 1

    if result is None:
        logger.info("Nothing to transfer")
    else:
        logger.info("Transfer finished", **result.model_dump())
    return 0


if __name__ == "__main__":
    sys.exit(main())
