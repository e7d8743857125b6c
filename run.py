#!/usr/bin/env python3
"""
Table Banking Loan Engine Entry Point

Starts the FastAPI server, or runs a maintenance task:

    python run.py                       # serve the API
    python run.py sweep-defaults        # default loans past the grace period
    python run.py pending-repairs       # list approved loans missing a schedule
    python run.py retry-notifications   # resend failed notifications
    python run.py token USER_ID         # issue a bearer token for USER_ID
"""

import argparse
import sys
from datetime import date

import uvicorn

from table_banking.api import create_app
from table_banking.api.auth import LendingSystem, create_access_token
from table_banking.config import get_config
from table_banking.logging_config import setup_logging


def run_server(system: LendingSystem) -> None:
    config = system.config
    print(f"API available at: http://{config.api_host}:{config.api_port}")
    print(f"Documentation at: http://{config.api_host}:{config.api_port}/docs")
    uvicorn.run(create_app(system), host=config.api_host, port=config.api_port,
                log_level=config.log_level.lower())


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Table banking loan engine")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="Run the HTTP API (default)")

    sweep = subparsers.add_parser("sweep-defaults", help="Default overdue loans")
    sweep.add_argument("--as-of", type=date.fromisoformat, default=None,
                       help="Evaluation date (ISO format), defaults to today")
    sweep.add_argument("--group", default=None, help="Restrict to one group id")

    subparsers.add_parser("pending-repairs", help="List approved loans without a schedule")
    subparsers.add_parser("retry-notifications", help="Resend failed notifications")

    token = subparsers.add_parser("token", help="Issue a bearer token")
    token.add_argument("user_id")
    token.add_argument("--minutes", type=int, default=60)

    args = parser.parse_args(argv)

    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)

    if args.command == "token":
        print(create_access_token(args.user_id, config, expires_minutes=args.minutes))
        return 0

    system = LendingSystem(config)

    if args.command == "sweep-defaults":
        defaulted = system.loan_manager.sweep_defaults(args.as_of, args.group)
        for loan in defaulted:
            print(f"{loan.id}\t{loan.group_id}\t{loan.borrower_id}\tdefaulted")
        print(f"{len(defaulted)} loan(s) defaulted")
    elif args.command == "pending-repairs":
        for loan in system.loan_manager.find_loans_needing_repair():
            print(f"{loan.id}\t{loan.group_id}\tapproved {loan.approved_at.isoformat()}")
    elif args.command == "retry-notifications":
        results = system.notifier.retry_failed()
        print(f"attempted={results['attempted']} succeeded={results['succeeded']} "
              f"failed={results['failed']}")
    else:
        try:
            run_server(system)
        except KeyboardInterrupt:
            print("\nShutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
