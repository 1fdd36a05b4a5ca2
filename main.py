#!/usr/bin/env python3
"""
Main entry point for the sitemap crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from sitecrawler.utils.config import load_config, validate_config, Config
from sitecrawler.utils.logger import setup_logging
from sitecrawler.utils.monitoring import CrawlStatistics
from sitecrawler.crawler.fetcher import WebFetcher
from sitecrawler.crawler.scheduler import CrawlerScheduler
from sitecrawler.crawler.sitemap import SitemapResolver, SitemapError


class CrawlerApp:
    """Main application class for the sitemap crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event: Optional[asyncio.Event] = None

    def setup_logging(self, config: Config):
        """Setup logging configuration."""
        setup_logging(asdict(config.logging), enable_json=config.logging.json)

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # not available on Windows event loops
                signal.signal(signum, lambda s, f: loop.call_soon_threadsafe(signal_handler, s))

    async def run(self, config: Config, dry_run: bool = False) -> int:
        """Run the crawler."""
        self._shutdown_event = asyncio.Event()
        try:
            self.setup_logging(config)
            self.setup_signal_handlers()

            options = config.crawl_options()
            sitemap_url = config.crawler.sitemap_url

            self.logger.info("=== SITEMAP CRAWLER STARTING ===")
            self.logger.info(f"Sitemap: {sitemap_url}")
            self.logger.info(f"Concurrency: {options.concurrency}")
            self.logger.info(f"Timeout: {options.timeout}s")
            self.logger.info(f"Frontier capacity: {options.frontier_capacity}")

            if dry_run:
                self.logger.info("DRY RUN MODE: resolving the sitemap only")
                return await self._dry_run(config)

            statistics = CrawlStatistics(
                enable_prometheus=config.monitoring.metrics_enabled,
                prometheus_port=config.monitoring.prometheus_port
            )
            statistics.start_prometheus_server()

            self.scheduler = CrawlerScheduler(options, sink=statistics)
            await self.scheduler.crawl(sitemap_url, self._shutdown_event)

        except SitemapError as e:
            self.logger.error(f"Cannot start crawl: {e}")
            return 1

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            self.logger.info("=== SITEMAP CRAWLER FINISHED ===")

        return 0

    async def _dry_run(self, config: Config) -> int:
        """Resolve the sitemap and report what would be crawled."""
        options = config.crawl_options()
        async with WebFetcher(
            user_agent=options.user_agent,
            request_timeout=options.timeout,
            max_concurrent_requests=options.concurrency
        ) as fetcher:
            resolver = SitemapResolver(fetcher, options.concurrency)
            urls = await resolver.resolve(config.crawler.sitemap_url)

        self.logger.info(f"Sitemap lists {len(urls)} URLs")
        for url in urls[:10]:
            self.logger.info(f"  {url}")
        if len(urls) > 10:
            self.logger.info(f"  ... and {len(urls) - 10} more")
        self.logger.info("Dry run completed")
        return 0


def build_config(args: argparse.Namespace) -> Config:
    """Load the configuration file, if any, and apply command line overrides."""
    if Path(args.config).exists():
        config = load_config(args.config)
    elif args.config != 'config.yaml':
        raise FileNotFoundError(f"Configuration file not found: {args.config}")
    else:
        config = Config()

    config = config.with_overrides(
        sitemap_url=args.sitemap_url,
        concurrency=args.concurrency,
        timeout=args.timeout
    )
    validate_config(config, require_sitemap=True)
    return config


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Sitemap Crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py https://example.com/sitemap.xml
  python main.py --config my_config.yaml
  python main.py https://example.com/sitemap.xml --concurrency 16 --timeout 10
  python main.py https://example.com/sitemap.xml --dry-run
        """
    )

    parser.add_argument(
        'sitemap_url',
        nargs='?',
        help='Sitemap or sitemap index URL (overrides crawler.sitemap_url)'
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--concurrency',
        type=int,
        help='Number of concurrent workers'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        help='Request timeout in seconds'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Resolve the sitemap without crawling'
    )

    parser.add_argument(
        '--version',
        action='version',
        version='Sitemap Crawler 1.0.0'
    )

    args = parser.parse_args()

    try:
        config = build_config(args)
    except (FileNotFoundError, ValueError, TypeError) as e:
        print(f"Configuration error: {e}")
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config, dry_run=args.dry_run))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
