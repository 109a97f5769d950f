from datetime import datetime

import pytest

from goldpinger.stats import DEFAULT_BUCKETS, Counter, Gauge, Histogram, Metrics, Timer


def test_counter_counts_each_increment():
    counter = Counter("c_total", "help", ["host"])
    hosts = ["a", "a", "b"]
    for host in hosts:
        counter.inc(host)
    assert counter.get("a") + counter.get("b") == len(hosts)
    assert counter.get("unseen") == 0.0


def test_label_cardinality_is_checked():
    counter = Counter("c_total", "help", ["host", "type"])
    with pytest.raises(ValueError):
        counter.inc("only-one")
    gauge = Gauge("g", "help", ["host"])
    with pytest.raises(ValueError):
        gauge.set(1.0)


def test_gauge_keeps_last_value():
    gauge = Gauge("g", "help", ["host"])
    gauge.set(3.5, "h")
    gauge.set(0.25, "h")
    assert gauge.get("h") == 0.25


def test_histogram_count_and_sum():
    histogram = Histogram("h", "help", ["host"])
    values = [0.003, 0.2, 40.0]
    for value in values:
        histogram.observe(value, "x")
    assert histogram.count("x") == len(values)
    assert histogram.sum("x") == pytest.approx(sum(values))
    assert histogram.count("y") == 0


def test_histogram_buckets_are_cumulative():
    histogram = Histogram("h", "help", [])
    for value in (0.003, 0.2, 40.0):
        histogram.observe(value)
    text = histogram.exposition()
    counts = [
        int(line.rsplit(" ", 1)[1])
        for line in text.splitlines()
        if line.startswith("h_bucket")
    ]
    assert len(counts) == len(DEFAULT_BUCKETS) + 1
    assert counts == sorted(counts)
    assert counts[-1] == histogram.count()
    assert 'h_bucket{le="+Inf"}' in text


def test_timer_observes_elapsed_time():
    seen = []
    timer = Timer(seen.append)
    elapsed = timer.observe_duration()
    assert elapsed >= 0
    assert seen == [elapsed]


def test_metrics_count_call_in_exposition():
    metrics = Metrics(hostname="pod-a")
    metrics.count_call("made", "ping")
    assert metrics.stats.get("pod-a", "made", "ping") == 1.0
    text = metrics.exposition()
    assert "# TYPE goldpinger_stats_total counter" in text
    assert 'goldpinger_stats_total{action="ping",goldpinger_instance="pod-a",group="made"} 1' in text


def test_health_gauges():
    metrics = Metrics(hostname="pod-a")
    metrics.set_cluster_health(True)
    assert metrics.cluster_health.get("pod-a") == 1.0
    metrics.set_cluster_health(False)
    assert metrics.cluster_health.get("pod-a") == 0.0
    metrics.count_healthy_unhealthy_nodes(4, 1)
    assert metrics.nodes_health.get("pod-a", "healthy") == 4
    assert metrics.nodes_health.get("pod-a", "unhealthy") == 1


def test_connectivity_and_error_counters():
    metrics = Metrics(hostname="pod-a")
    metrics.set_peer_connectivity_status(True, "node-1")
    metrics.set_telnet_connectivity_status(False, "db")
    metrics.set_els_connectivity_status(True, "search")
    metrics.count_dns_error("a.example.com")
    metrics.count_telnet_error("db")
    metrics.count_els_error("search")
    metrics.count_error("ping")
    assert metrics.peer_connectivity.get("pod-a", "node-1") == 1.0
    assert metrics.telnet_connectivity.get("pod-a", "db") == 0.0
    assert metrics.els_connectivity.get("pod-a", "search") == 1.0
    assert metrics.dns_errors.get("pod-a", "a.example.com") == 1.0
    assert metrics.telnet_errors.get("pod-a", "db") == 1.0
    assert metrics.els_errors.get("pod-a", "search") == 1.0
    assert metrics.errors.get("pod-a", "ping") == 1.0


def test_call_timers_record_into_histograms():
    metrics = Metrics(hostname="pod-a")
    metrics.kubernetes_calls_timer().observe_duration()
    metrics.peers_calls_timer("check", "10.0.0.1", "10.1.0.1").observe_duration()
    metrics.telnet_calls_timer("db").observe_duration()
    metrics.els_calls_timer("search").observe_duration()
    assert metrics.kubernetes_response_time.count("pod-a") == 1
    assert metrics.peers_response_time.count("pod-a", "check", "10.0.0.1", "10.1.0.1", "") == 1
    assert metrics.telnet_response_time.count("pod-a", "db") == 1
    assert metrics.els_response_time.count("pod-a", "search") == 1


def test_get_stats_reports_boot_time():
    metrics = Metrics()
    stats = metrics.get_stats()
    assert stats.boot_time == metrics.boot_time
    assert isinstance(stats.boot_time, datetime) and stats.received is None


def test_label_values_are_escaped():
    counter = Counter("c_total", "help", ["host"])
    counter.inc('a"b')
    assert 'host="a\\"b"' in counter.exposition()