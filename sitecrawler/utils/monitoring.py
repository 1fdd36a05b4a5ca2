"""
Crawl statistics: the sink that receives one WorkResult per crawled page.
"""

import time
import logging
from typing import Dict, Optional, Any
from dataclasses import dataclass
from collections import Counter as Tally

from prometheus_client import Counter, Histogram, CollectorRegistry
from prometheus_client import start_http_server


@dataclass(frozen=True)
class WorkResult:
    """Outcome of one executed crawl job."""
    parent_url: str
    url: str
    worker_id: int
    pool_size: int
    response_size: int
    status_code: int
    start_time: float
    end_time: float
    content_type: str

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class StatsSink:
    """Receives one WorkResult per executed crawl job."""

    def record(self, result: WorkResult):
        """Record a crawl result."""
        raise NotImplementedError


class CrawlStatistics(StatsSink):
    """
    Aggregates crawl results in memory and optionally exports them to Prometheus.
    """

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.start_time = time.time()
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        self.pages = 0
        self.total_bytes = 0
        self.total_response_time = 0.0
        self.status_codes: Tally = Tally()
        self.content_types: Tally = Tally()
        self.pages_per_worker: Tally = Tally()

        self.prometheus_registry = CollectorRegistry()
        self.prometheus_metrics = {
            'pages_crawled_total': Counter(
                'crawler_pages_crawled_total',
                'Total number of pages crawled',
                registry=self.prometheus_registry
            ),
            'bytes_downloaded_total': Counter(
                'crawler_bytes_downloaded_total',
                'Total bytes downloaded',
                registry=self.prometheus_registry
            ),
            'responses_total': Counter(
                'crawler_responses_total',
                'HTTP responses by status code',
                ['status_code'],
                registry=self.prometheus_registry
            ),
            'response_time_seconds': Histogram(
                'crawler_response_time_seconds',
                'Response time for HTTP requests',
                registry=self.prometheus_registry
            )
        }

    def start_prometheus_server(self):
        """Start the Prometheus metrics HTTP server if enabled."""
        if not self.enable_prometheus:
            return
        try:
            start_http_server(self.prometheus_port, registry=self.prometheus_registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def mark_started(self):
        """Restart the clock when the crawl itself begins."""
        self.start_time = time.time()

    def record(self, result: WorkResult):
        """Record a crawl result."""
        self.pages += 1
        self.total_bytes += result.response_size
        self.total_response_time += result.duration
        self.status_codes[result.status_code] += 1
        self.content_types[result.content_type.split(';')[0].strip() or 'unknown'] += 1
        self.pages_per_worker[result.worker_id] += 1

        self.prometheus_metrics['pages_crawled_total'].inc()
        self.prometheus_metrics['bytes_downloaded_total'].inc(result.response_size)
        self.prometheus_metrics['responses_total'].labels(status_code=str(result.status_code)).inc()
        self.prometheus_metrics['response_time_seconds'].observe(result.duration)

        self.logger.info(
            f"{result.status_code} {result.url} "
            f"({result.response_size} bytes, {result.duration:.2f}s, "
            f"worker {result.worker_id}/{result.pool_size}, from {result.parent_url})"
        )

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages / elapsed_minutes if elapsed_minutes > 0 else 0

    @property
    def average_response_time(self) -> float:
        return self.total_response_time / self.pages if self.pages else 0.0

    def summary(self) -> Dict[str, Any]:
        """Get a summary of all statistics."""
        return {
            'pages_crawled': self.pages,
            'bytes_downloaded': self.total_bytes,
            'elapsed_time': self.elapsed_time,
            'pages_per_minute': self.pages_per_minute,
            'average_response_time': self.average_response_time,
            'status_codes': dict(self.status_codes),
            'content_types': dict(self.content_types),
            'pages_per_worker': dict(self.pages_per_worker)
        }

    def log_progress(self, frontier_stats: Optional[Dict[str, int]] = None):
        """Log current crawl progress."""
        queued = frontier_stats.get('total_queued', 0) if frontier_stats else 0
        self.logger.info(
            f"Crawl Progress: "
            f"Crawled={self.pages}, "
            f"Queued={queued}, "
            f"Rate={self.pages_per_minute:.1f} pages/min, "
            f"AvgTime={self.average_response_time:.2f}s"
        )

    def log_summary(self):
        """Log final crawl statistics."""
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Total pages crawled: {self.pages}")
        self.logger.info(f"Total time: {self.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {self.pages_per_minute:.1f} pages/min")
        self.logger.info(f"Average response time: {self.average_response_time:.2f}s")
        self.logger.info(f"Data downloaded: {self.total_bytes / 1024 / 1024:.1f} MB")
        self.logger.info(f"Status codes: {dict(sorted(self.status_codes.items()))}")
        self.logger.info(f"Content types: {dict(self.content_types)}")
