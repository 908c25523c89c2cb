#!/usr/bin/env python3
"""
Main entry point for the link crawler.
"""

import asyncio
import argparse
import dataclasses
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from simple_crawler.crawler import CrawlerScheduler, LinkStorageListener
from simple_crawler.errors import ConfigurationError
from simple_crawler.storage import ConsoleLinkStorage, FileLinkStorage, LinkStorage
from simple_crawler.utils.config import Config, load_config
from simple_crawler.utils.logger import log_system_info, setup_logging
from simple_crawler.utils.monitoring import initialize_monitoring


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)

    def setup_signal_handlers(self):
        """Stop the crawl on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            if self.scheduler:
                loop.create_task(self.scheduler.stop())

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(signum, lambda s, f: loop.call_soon_threadsafe(signal_handler, s))

    def create_storage(self, config: Config) -> LinkStorage:
        if config.storage.type == 'file':
            return FileLinkStorage(config.storage.file, config.storage.max_link_count)
        return ConsoleLinkStorage(config.storage.max_link_count, stream=sys.stdout)

    async def run(self, config: Config) -> int:
        """Run the crawler."""
        setup_logging(config.logging)
        log_system_info()

        self.logger.info("=== CRAWLER STARTING ===")
        self.logger.info(f"Seed addresses: {list(config.crawler.seeds_address)}")
        self.logger.info(f"Depth: {config.crawler.depth}")
        self.logger.info(f"Workers: {config.crawler.thread_count}")
        self.logger.info(f"Lock host: {config.crawler.lock_host}")
        self.logger.info(f"Storage: {config.storage.type}")

        monitor = initialize_monitoring(config.monitoring.metrics_enabled, config.monitoring.prometheus_port)
        storage = self.create_storage(config)

        try:
            self.scheduler = CrawlerScheduler(
                config.crawler,
                listener=LinkStorageListener(storage),
                monitor=monitor
            )
            self.setup_signal_handlers()

            # seeds count as discovered links too
            for seed in config.crawler.seeds_address:
                storage.try_add(seed)

            await self.scheduler.crawl()

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            storage.close()
            self.logger.info(f"Links recorded: {storage.link_count}")
            self.logger.info("=== CRAWLER FINISHED ===")

        return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Link crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                  # Run with default config.yaml
  python main.py --config my_config.yaml          # Run with custom config
  python main.py --url https://www.example.com    # Override the seed address
  python main.py --output links.txt               # Append links to a file
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--url',
        action='append',
        help='Seed address; may be repeated and replaces the configured seeds'
    )

    parser.add_argument(
        '--output',
        help='Write discovered links to this file instead of the console'
    )

    parser.add_argument(
        '--max-links',
        type=int,
        help='Maximum number of links to record'
    )

    parser.add_argument(
        '--version',
        action='version',
        version='Simple Crawler 1.0.0'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    try:
        config = load_config(args.config)
        if args.url:
            config.crawler = dataclasses.replace(config.crawler, seeds_address=args.url)
        if args.output:
            config.storage.type = 'file'
            config.storage.file = args.output
        if args.max_links:
            config.storage.max_link_count = args.max_links
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
