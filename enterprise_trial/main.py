"""Command line entry point — request or resume an enterprise trial."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

import structlog

from enterprise_trial.config import settings
from enterprise_trial.notifications.sink import LogNotificationSink
from enterprise_trial.trial.bootstrap import BootstrapData
from enterprise_trial.trial.service import EnterpriseTrialService

logger = structlog.get_logger()


def configure_logging() -> None:
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer() if settings.environment == "development"
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="enterprise-trial")
    commands = parser.add_subparsers(dest="command", required=True)

    request = commands.add_parser("request", help="request a new enterprise trial")
    request.add_argument("--company", required=True)
    request.add_argument("--first-name", required=True)
    request.add_argument("--last-name", required=True)
    request.add_argument("--email", required=True)
    request.add_argument("--domain", required=True)
    request.add_argument("--accept-terms", action="store_true", help="general consent")
    request.add_argument("--newsletter", action="store_true")

    resume = commands.add_parser("resume", help="resume a trial after a restart")
    resume.add_argument("--trial-key", required=True)
    return parser


async def run(args: argparse.Namespace) -> int:
    notifier = LogNotificationSink()
    bootstrap = BootstrapData()
    if args.command == "resume":
        bootstrap = BootstrapData({settings.resumption_key: args.trial_key})

    service = EnterpriseTrialService(notifier=notifier, bootstrap=bootstrap)
    try:
        if args.command == "request":
            task = await service.submit(
                {
                    "company": args.company,
                    "first_name": args.first_name,
                    "last_name": args.last_name,
                    "email": args.email,
                    "domain": args.domain,
                    "general_consent": args.accept_terms,
                    "newsletter_consent": args.newsletter,
                }
            )
        else:
            task = await service.resume()

        if task is not None:
            print(f"Check your inbox at {service.session.email} to confirm the trial.")
            await task
    finally:
        await service.aclose()

    session = service.session
    if session.error_message:
        print(session.error_message, file=sys.stderr)
    for notification in notifier.notifications:
        print(f"[{notification.level}] {notification.text}")
    print(f"Status: {session.status.value}")
    return 0 if session.confirmed else 1


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    logger.info("enterprise_trial_cli", command=args.command)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
