"""
Monitoring and metrics collection for crawl and indexing runs.
"""

import time
import logging
from typing import Dict, Optional, Any, List
from dataclasses import dataclass, field

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
from prometheus_client import start_http_server


@dataclass
class MetricPoint:
    """Individual metric data point."""
    timestamp: float
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class Metric:
    """Metric container with recent history."""
    name: str
    description: str
    metric_type: str  # counter, gauge, histogram
    points: List[MetricPoint] = field(default_factory=list)
    current_value: float = 0.0


class MetricsCollector:
    """Collects metrics in-process and mirrors them into a Prometheus registry."""

    MAX_POINTS = 1000

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.metrics: Dict[str, Metric] = {}
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        self.prometheus_registry = CollectorRegistry()
        self.prometheus_metrics = {
            'pages_dispatched_total': Counter(
                'spiderrank_pages_dispatched_total',
                'URLs admitted from the frontier',
                registry=self.prometheus_registry
            ),
            'pages_crawled_total': Counter(
                'spiderrank_pages_crawled_total',
                'Pages fetched and extracted successfully',
                registry=self.prometheus_registry
            ),
            'pages_partial_total': Counter(
                'spiderrank_pages_partial_total',
                'Pages that yielded only metadata (paywalled)',
                registry=self.prometheus_registry
            ),
            'page_errors_total': Counter(
                'spiderrank_page_errors_total',
                'Pages discarded after a failure',
                ['error_type'],
                registry=self.prometheus_registry
            ),
            'fetch_duration_seconds': Histogram(
                'spiderrank_fetch_duration_seconds',
                'Time spent fetching and extracting a page',
                registry=self.prometheus_registry
            ),
            'frontier_size': Gauge(
                'spiderrank_frontier_size',
                'URLs waiting in the frontier',
                registry=self.prometheus_registry
            ),
            'in_flight_tasks': Gauge(
                'spiderrank_in_flight_tasks',
                'Fetch tasks currently running',
                registry=self.prometheus_registry
            ),
            'pagerank_iterations': Gauge(
                'spiderrank_pagerank_iterations',
                'Iterations used by the last authority computation',
                registry=self.prometheus_registry
            ),
            'indexed_terms': Gauge(
                'spiderrank_indexed_terms',
                'Distinct terms in the last scored index',
                registry=self.prometheus_registry
            ),
        }

    def start_prometheus_server(self):
        """Start the Prometheus metrics HTTP server."""
        if not self.enable_prometheus:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.prometheus_registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def record_metric(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                      description: str = "", metric_type: str = "gauge", increment: float = 0.0):
        """Record a metric value."""
        labels = labels or {}

        if name not in self.metrics:
            self.metrics[name] = Metric(name=name, description=description, metric_type=metric_type)

        metric = self.metrics[name]
        metric.points.append(MetricPoint(timestamp=time.time(), value=value, labels=labels))
        metric.current_value = value
        if len(metric.points) > self.MAX_POINTS:
            metric.points = metric.points[-self.MAX_POINTS:]

        prom_metric = self.prometheus_metrics.get(name)
        if prom_metric is None:
            return
        if labels:
            prom_metric = prom_metric.labels(**labels)
        if metric_type == "counter":
            prom_metric.inc(increment)
        elif metric_type == "histogram":
            prom_metric.observe(value)
        else:
            prom_metric.set(value)

    def increment_counter(self, name: str, labels: Optional[Dict[str, str]] = None,
                          description: str = "", amount: float = 1.0):
        """Increment a counter metric."""
        current_value = self.metrics[name].current_value if name in self.metrics else 0.0
        self.record_metric(name, current_value + amount, labels, description, "counter", amount)

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                  description: str = ""):
        """Set a gauge metric value."""
        self.record_metric(name, value, labels, description, "gauge")

    def observe_histogram(self, name: str, value: float, labels: Optional[Dict[str, str]] = None,
                          description: str = ""):
        """Record a histogram observation."""
        self.record_metric(name, value, labels, description, "histogram")

    def get_metric(self, name: str) -> Optional[Metric]:
        return self.metrics.get(name)

    def get_current_values(self) -> Dict[str, float]:
        """Get current values of all metrics."""
        return {name: metric.current_value for name, metric in self.metrics.items()}

    def export_prometheus(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.prometheus_registry)


class CrawlerMonitor:
    """High-level monitoring interface for the crawler and indexer."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.logger = logging.getLogger(__name__)
        self.start_time = time.time()

    def record_dispatch(self, url: str):
        self.metrics.increment_counter('pages_dispatched_total', description='URLs dispatched')

    def record_page_crawled(self, url: str, duration: float, is_partial: bool):
        """Record a successful fetch+extract."""
        self.metrics.increment_counter('pages_crawled_total', description='Pages crawled')
        self.metrics.observe_histogram('fetch_duration_seconds', duration,
                                       description='Fetch and extract time')
        if is_partial:
            self.metrics.increment_counter('pages_partial_total', description='Partial pages')

    def record_error(self, error_type: str):
        """Record a discarded page."""
        self.metrics.increment_counter('page_errors_total', {'error_type': error_type},
                                       'Discarded pages')

    def update_frontier(self, queued: int, in_flight: int):
        self.metrics.set_gauge('frontier_size', queued, description='URLs in frontier')
        self.metrics.set_gauge('in_flight_tasks', in_flight, description='Running tasks')

    def record_pagerank(self, iterations: int):
        self.metrics.set_gauge('pagerank_iterations', iterations,
                               description='PageRank iterations')

    def record_index_size(self, terms: int):
        self.metrics.set_gauge('indexed_terms', terms, description='Indexed terms')

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        current_values = self.metrics.get_current_values()
        runtime = time.time() - self.start_time
        crawled = current_values.get('pages_crawled_total', 0)

        return {
            'runtime_seconds': runtime,
            'metrics': current_values,
            'rates': {
                'pages_per_minute': crawled / (runtime / 60) if runtime > 0 else 0,
            }
        }


def initialize_monitoring(enable_prometheus: bool = False, prometheus_port: int = 8000) -> CrawlerMonitor:
    """Create a monitor and start its exposition server when enabled."""
    metrics_collector = MetricsCollector(enable_prometheus, prometheus_port)
    metrics_collector.start_prometheus_server()
    return CrawlerMonitor(metrics_collector)
