"""
Shelly mDNS Discovery - Main Entry Point
"""

import argparse
import asyncio
import signal
import sys
import logging
import os
import yaml
from typing import List, Optional

from config_loader import (
    ConfigError, load_config, apply_overrides, build_discovery_config, setup_logging,
    ERROR_POLICIES,
)
from discovery.mdns_browser import DiscoveryError
from services.discovery_runner import DiscoveryRunner

logger = logging.getLogger(__name__)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shelly-discovery",
        description="mDNS discovery for Shelly IoT devices",
    )
    parser.add_argument("-service", "--service", dest="service",
                        help="Service type to look for devices (default: _http._tcp)")
    parser.add_argument("-domain", "--domain", dest="domain",
                        help="Search domain. For local networks, default is fine (default: local)")
    parser.add_argument("-wait", "--wait", dest="wait", type=float,
                        help="Duration in seconds to run discovery (default: 90)")
    parser.add_argument("-user", "--user", dest="user",
                        help="Username for your Shelly devices (default: admin)")
    parser.add_argument("-password", "--password", dest="password",
                        help="Password for your Shelly devices (default: admin)")
    parser.add_argument("--config", dest="config",
                        default=os.environ.get('CONFIG_FILE'),
                        help="YAML configuration file (default: $CONFIG_FILE)")
    parser.add_argument("--periodic", dest="mode", action="store_const", const="periodic",
                        help="Keep running discovery every interval")
    parser.add_argument("--interval", dest="interval", type=float,
                        help="Minutes between discovery cycles in periodic mode (default: 5)")
    parser.add_argument("--on-error", dest="on_error", choices=ERROR_POLICIES,
                        help="Report unreachable devices with empty fields or skip them (default: emit)")
    parser.add_argument("--log-level", dest="log_level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INFO)")
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    """Map parsed CLI flags onto configuration sections"""
    return {
        'discovery': {'service': args.service, 'domain': args.domain, 'wait_seconds': args.wait},
        'device': {'username': args.user, 'password': args.password},
        'runner': {'mode': args.mode, 'interval_minutes': args.interval},
        'output': {'on_error': args.on_error},
        'logging': {'level': args.log_level},
    }


async def run(argv: Optional[List[str]] = None) -> int:
    """Parse flags, build configuration and run discovery; returns the exit code"""
    args = build_parser().parse_args(argv)

    try:
        config = apply_overrides(load_config(args.config), overrides_from_args(args))
        setup_logging(config)
        discovery_config = build_discovery_config(config)
    except (ConfigError, OSError, yaml.YAMLError) as e:
        logging.basicConfig()
        logger.error(f"Invalid configuration: {e}")
        return 1

    runner = DiscoveryRunner(discovery_config)
    run_task = asyncio.ensure_future(runner.run())

    def shutdown(signum):
        logger.info(f"Received signal {signum}, shutting down...")
        runner.stop()
        run_task.cancel()

    # Handle graceful shutdown
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, shutdown, signum)
        except (NotImplementedError, RuntimeError):
            pass

    try:
        await run_task
    except asyncio.CancelledError:
        logger.info("Discovery cancelled")
    except DiscoveryError as e:
        logger.error(str(e))
        return 1
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(signum)
            except (NotImplementedError, RuntimeError):
                pass

    return 0


def main() -> None:
    try:
        exit_code = asyncio.run(run())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nDiscovery stopped by user", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    main()
