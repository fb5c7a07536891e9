"""
agent.py - Miner agent entry point.

Loads the JSON config, starts XMRig and reports its stats to the dashboard
until interrupted.

Usage:
    python -m minerboard.miner.agent --config config.json --resources resources
    minerboard-agent --worker me@example.com --wallet 4A... --save
"""

import argparse
import asyncio
import logging
import signal
import sys

from minerboard.miner.config import MinerConfigStore
from minerboard.miner.reporter import ContributionReporter
from minerboard.miner.supervisor import XMRigSupervisor

LOG_FORMAT = "%(asctime)s [%(name)-10s] %(levelname)-5s %(message)s"

logger = logging.getLogger("agent")


def apply_overrides(args) -> dict:
    """Config changes requested on the command line (only flags that were given)."""
    changes = {}
    if args.pool:
        changes["pool_url"] = args.pool
    if args.wallet:
        changes["wallet_address"] = args.wallet
    if args.worker:
        changes["worker_id"] = args.worker
    if args.threads:
        changes["threads"] = args.threads
    if args.dashboard:
        changes["dashboard_url"] = args.dashboard
    return changes


async def run_agent(store: MinerConfigStore, supervisor: XMRigSupervisor, reporter: ContributionReporter):
    config = store.get()
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; KeyboardInterrupt ends the run.
            pass

    await supervisor.start(config.pool_url, config.wallet_address, config.worker_id, config.threads)
    reporter.start()
    try:
        await stop_event.wait()
    finally:
        await reporter.stop()
        await supervisor.stop()


def main():
    """CLI entry point for the miner agent."""
    parser = argparse.ArgumentParser(description="Minerboard miner agent")
    parser.add_argument("--config", default="config.json", help="Agent config file (default: config.json)")
    parser.add_argument("--resources", default="resources", help="Directory holding the bundled XMRig binaries")
    parser.add_argument("--pool", help="Pool URL (host:port)")
    parser.add_argument("--wallet", help="Payout wallet address")
    parser.add_argument("--worker", help="Worker ID reported to the dashboard")
    parser.add_argument("--threads", type=int, help="CPU thread hint for XMRig")
    parser.add_argument("--dashboard", help="Dashboard base URL")
    parser.add_argument("--save", action="store_true", help="Persist the given overrides to the config file")
    parser.add_argument("--show-config", action="store_true", help="Print the effective config and exit")
    parser.add_argument("--interval", type=float, default=5.0, help="Reporting interval in seconds (default: 5)")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT, datefmt="%H:%M:%S")

    store = MinerConfigStore(args.config)
    store.load()
    changes = apply_overrides(args)
    if changes:
        if args.save:
            store.update(**changes)
        else:
            for key, value in changes.items():
                setattr(store.get(), key, value)

    if args.show_config:
        print(store.export_json())
        return

    if not store.is_valid():
        logger.error("Configuration incomplete: pool, wallet, worker, threads and dashboard are required")
        sys.exit(1)

    supervisor = XMRigSupervisor(args.resources)
    reporter = ContributionReporter(supervisor, store, interval=args.interval)

    try:
        asyncio.run(run_agent(store, supervisor, reporter))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except (FileNotFoundError, RuntimeError) as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
