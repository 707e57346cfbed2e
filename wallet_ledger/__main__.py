#!/usr/bin/env python3
"""
Wallet Ledger maintenance commands

    python -m wallet_ledger sweep [--now ISO-8601]
    python -m wallet_ledger check-store
    python -m wallet_ledger verify
"""

import argparse
import sys

from .clock import parse_timestamp
from .config import get_config
from .errors import WalletError
from .logging_config import setup_logging
from .service import WalletService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wallet_ledger", description="Wallet ledger maintenance")
    commands = parser.add_subparsers(dest="command", required=True)
    
    sweep = commands.add_parser("sweep", help="Settle matured investment contracts")
    sweep.add_argument("--now", help="Settlement instant (ISO-8601, defaults to current time)")
    
    commands.add_parser("check-store", help="Read every collection and report record counts")
    commands.add_parser("verify", help="Check every balance against its transaction history")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    
    service = WalletService(config=config)
    try:
        if args.command == "sweep":
            now = parse_timestamp(args.now) if args.now else None
            completed = service.sweep(now)
            if completed:
                print(f"Investment processing complete. {completed} investments were completed.")
            else:
                print("No investments ready for processing at this time.")
            return 0
        
        if args.command == "check-store":
            counts = service.check_store()
            for collection, count in counts.items():
                status = "unreachable" if count is None else f"{count} records"
                print(f"{collection}: {status}")
            return 0 if all(count is not None for count in counts.values()) else 1
        
        if args.command == "verify":
            inconsistent = service.verify_accounts()
            for email in inconsistent:
                print(f"inconsistent: {email}")
            return 1 if inconsistent else 0
    except WalletError as e:
        print(f"{e.code}: {e.message}", file=sys.stderr)
        return 2
    finally:
        service.close()
    
    return 1


if __name__ == "__main__":
    sys.exit(main())
