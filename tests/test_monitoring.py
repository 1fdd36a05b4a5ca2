"""Tests for crawl statistics."""

import pytest

from sitecrawler.utils.monitoring import CrawlStatistics, StatsSink, WorkResult


def result(url='http://example.com/', status=200, size=100, worker=1,
           content_type='text/html; charset=utf-8', start=1.0, end=1.5):
    return WorkResult(
        parent_url='http://example.com/sitemap.xml',
        url=url,
        worker_id=worker,
        pool_size=2,
        response_size=size,
        status_code=status,
        start_time=start,
        end_time=end,
        content_type=content_type
    )


class TestWorkResult:

    def test_duration(self):
        assert result(start=2.0, end=2.25).duration == 0.25

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            result().status_code = 500


class TestCrawlStatistics:

    def test_base_sink_is_abstract(self):
        with pytest.raises(NotImplementedError):
            StatsSink().record(result())

    def test_record_aggregates(self):
        statistics = CrawlStatistics()
        statistics.record(result(size=100, worker=1))
        statistics.record(result(url='http://example.com/a', status=404, size=50, worker=2,
                                 content_type='', start=0.0, end=1.0))

        summary = statistics.summary()
        assert summary['pages_crawled'] == 2
        assert summary['bytes_downloaded'] == 150
        assert summary['status_codes'] == {200: 1, 404: 1}
        assert summary['content_types'] == {'text/html': 1, 'unknown': 1}
        assert summary['pages_per_worker'] == {1: 1, 2: 1}
        assert summary['average_response_time'] == pytest.approx(0.75)

    def test_prometheus_metrics(self):
        statistics = CrawlStatistics()
        statistics.record(result(size=100))
        statistics.record(result(size=20, status=500))

        registry = statistics.prometheus_registry
        assert registry.get_sample_value('crawler_pages_crawled_total') == 2
        assert registry.get_sample_value('crawler_bytes_downloaded_total') == 120
        assert registry.get_sample_value('crawler_responses_total', {'status_code': '500'}) == 1
        assert registry.get_sample_value('crawler_response_time_seconds_count') == 2

    def test_empty_statistics(self):
        statistics = CrawlStatistics()
        assert statistics.average_response_time == 0.0
        statistics.log_progress({'total_queued': 3})
        statistics.log_summary()

    def test_prometheus_server_disabled_by_default(self):
        statistics = CrawlStatistics()
        statistics.start_prometheus_server()
        assert statistics.enable_prometheus is False

    def test_mark_started_resets_the_clock(self):
        statistics = CrawlStatistics()
        statistics.start_time -= 600
        assert statistics.elapsed_time >= 600

        statistics.mark_started()
        assert statistics.elapsed_time < 60
