#!/usr/bin/env python3
"""
Snowman Attribution - Open Call Smoke Test
Simulates an app launch and sends one open request.

Run:
    BRANCH_KEY=key_live_... BRANCH_SECRET=secret_live_... \\
        python -m attribution --url "snowman://open?link_click_id=1234"
"""

import argparse
import asyncio
import json
import sys

from core.config import AttributionConfig
from core.exceptions import ConfigurationException
from core.logging import configure_logging

from .payload import (
    DeviceInfo,
    PlatformDeviceInfoProvider,
    StaticDeviceInfoProvider,
    parse_os_version,
)
from .session import LAUNCH_TRIGGER_DELAY, AttributionSession
from .user_agent import StaticUserAgentResolver


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m attribution",
        description="Send a single open attribution request.",
    )
    link = parser.add_mutually_exclusive_group()
    link.add_argument("--universal-link", help="Simulate a Universal Link open")
    link.add_argument("--url", help="Simulate a URI-scheme open carrying link_click_id")
    parser.add_argument("--user-agent", help="User agent to report")
    parser.add_argument("--model", help="Device model (default: platform machine)")
    parser.add_argument("--os-version", help="OS version, e.g. 17.0.1")
    parser.add_argument("--app-version", help="App short version")
    parser.add_argument("--vendor-id", help="Vendor-scoped hardware id")
    parser.add_argument("--console-logs", action="store_true", help="Human-readable logs")
    return parser


def parse_args(argv=None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    # Static device fields only apply to an explicit device
    if args.model is None and (args.os_version or args.app_version):
        parser.error("--os-version and --app-version require --model")
    return args


def build_device_provider(args: argparse.Namespace):
    if args.model is None:
        return PlatformDeviceInfoProvider(vendor_id=args.vendor_id)
    return StaticDeviceInfoProvider(DeviceInfo(
        model=args.model,
        os_version=parse_os_version(args.os_version or "0"),
        app_version=args.app_version,
        vendor_id=args.vendor_id,
    ))


async def run(args: argparse.Namespace, config: AttributionConfig) -> int:
    session = AttributionSession(
        config,
        user_agent_resolver=StaticUserAgentResolver(args.user_agent),
        device_info_provider=build_device_provider(args),
    )

    async with session:
        session.did_finish_launching()
        if args.universal_link:
            session.continue_user_activity(args.universal_link)
        elif args.url and not session.open_url(args.url):
            print("❌ link_click_id not found in the URL", file=sys.stderr)

        # Let the launch trigger fire if no link got there first
        await asyncio.sleep(LAUNCH_TRIGGER_DELAY + 0.1)
        await session.requester.wait_for_pending()

    params = session.latest_referring_params
    if params is None:
        print("❌ Open request failed, see logs", file=sys.stderr)
        return 1

    print(json.dumps(params, indent=2, sort_keys=True))
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)

    config = AttributionConfig.from_env()
    configure_logging(
        level=config.log_level,
        json_output=config.json_logs and not args.console_logs,
    )

    try:
        config.validate()
    except ConfigurationException as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 2

    return asyncio.run(run(args, config))


if __name__ == "__main__":
    sys.exit(main())
