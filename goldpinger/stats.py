"""In-process metrics and their Prometheus text exposition."""

from __future__ import annotations

import bisect
import math
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Iterator, Sequence

from .models.results import PingResults

DEFAULT_BUCKETS: tuple[float, ...] = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30)


def _format_value(value: float) -> str:
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if math.isnan(value):
        return "NaN"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _labels_text(pairs: Sequence[tuple[str, str]]) -> str:
    if not pairs:
        return ""
    return "{" + ",".join(f'{name}="{_escape(value)}"' for name, value in pairs) + "}"


class _Family:
    kind = "untyped"

    def __init__(self, name: str, help: str, labelnames: Sequence[str]):
        self.name = name
        self.help = help
        self.labelnames = tuple(labelnames)
        self._lock = threading.Lock()

    def _key(self, values: Sequence[object]) -> tuple[str, ...]:
        if len(values) != len(self.labelnames):
            raise ValueError(
                f"inconsistent label cardinality for {self.name}: expected "
                f"{len(self.labelnames)} label values but got {len(values)}"
            )
        return tuple(str(v) for v in values)

    def _pairs(self, key: tuple[str, ...], extra: Sequence[tuple[str, str]] = ()) -> list[tuple[str, str]]:
        return sorted(zip(self.labelnames, key)) + list(extra)

    def _samples(self) -> Iterator[str]:
        raise NotImplementedError

    def exposition(self) -> str:
        lines = [f"# HELP {self.name} {self.help}", f"# TYPE {self.name} {self.kind}"]
        with self._lock:
            lines.extend(self._samples())
        return "\n".join(lines) + "\n"


class Counter(_Family):
    """A monotonically increasing count per label set."""

    kind = "counter"

    def __init__(self, name: str, help: str, labelnames: Sequence[str] = ()):
        super().__init__(name, help, labelnames)
        self._values: dict[tuple[str, ...], float] = {}

    def inc(self, *args: object) -> None:
        key = self._key(args)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + 1.0

    def get(self, *args: object) -> float:
        key = self._key(args)
        with self._lock:
            return self._values.get(key, 0.0)

    def _samples(self) -> Iterator[str]:
        for key in sorted(self._values):
            yield f"{self.name}{_labels_text(self._pairs(key))} {_format_value(self._values[key])}"


class Gauge(_Family):
    """A value that can be set to anything per label set."""

    kind = "gauge"

    def __init__(self, name: str, help: str, labelnames: Sequence[str] = ()):
        super().__init__(name, help, labelnames)
        self._values: dict[tuple[str, ...], float] = {}

    def set(self, value: float, *args: object) -> None:
        key = self._key(args)
        with self._lock:
            self._values[key] = float(value)

    def get(self, *args: object) -> float:
        key = self._key(args)
        with self._lock:
            return self._values.get(key, 0.0)

    def _samples(self) -> Iterator[str]:
        for key in sorted(self._values):
            yield f"{self.name}{_labels_text(self._pairs(key))} {_format_value(self._values[key])}"


class _HistogramData:
    __slots__ = ("buckets", "total", "count")

    def __init__(self, size: int):
        self.buckets = [0] * size
        self.total = 0.0
        self.count = 0


class Histogram(_Family):
    """Observations counted into cumulative buckets per label set."""

    kind = "histogram"

    def __init__(
        self,
        name: str,
        help: str,
        labelnames: Sequence[str] = (),
        buckets: Sequence[float] = DEFAULT_BUCKETS,
    ):
        super().__init__(name, help, labelnames)
        self.buckets = tuple(sorted(float(b) for b in buckets))
        self._values: dict[tuple[str, ...], _HistogramData] = {}

    def observe(self, value: float, *args: object) -> None:
        key = self._key(args)
        with self._lock:
            data = self._values.setdefault(key, _HistogramData(len(self.buckets)))
            index = bisect.bisect_left(self.buckets, value)
            if index < len(self.buckets):
                data.buckets[index] += 1
            data.total += value
            data.count += 1

    def count(self, *args: object) -> int:
        key = self._key(args)
        with self._lock:
            data = self._values.get(key)
            return data.count if data else 0

    def sum(self, *args: object) -> float:
        key = self._key(args)
        with self._lock:
            data = self._values.get(key)
            return data.total if data else 0.0

    def _samples(self) -> Iterator[str]:
        for key in sorted(self._values):
            data = self._values[key]
            cumulative = 0
            for bound, hits in zip(self.buckets, data.buckets):
                cumulative += hits
                pairs = self._pairs(key, [("le", _format_value(bound))])
                yield f"{self.name}_bucket{_labels_text(pairs)} {cumulative}"
            pairs = self._pairs(key, [("le", "+Inf")])
            yield f"{self.name}_bucket{_labels_text(pairs)} {data.count}"
            labels = _labels_text(self._pairs(key))
            yield f"{self.name}_sum{labels} {_format_value(data.total)}"
            yield f"{self.name}_count{labels} {data.count}"


class Timer:
    """Measures the time since it was created and hands it to an observer."""

    def __init__(self, observe: Callable[[float], None]):
        self._observe = observe
        self._start = time.perf_counter()

    def observe_duration(self) -> float:
        """Record the elapsed seconds and return them."""
        elapsed = time.perf_counter() - self._start
        self._observe(elapsed)
        return elapsed

    def __enter__(self) -> "Timer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.observe_duration()


class Metrics:
    """All metrics one instance publishes, labelled with its hostname."""

    def __init__(self, hostname: str = ""):
        self.hostname = hostname
        self.boot_time = datetime.now(timezone.utc)
        self.stats = Counter(
            "goldpinger_stats_total",
            "Statistics of calls made in goldpinger instances",
            ["goldpinger_instance", "group", "action"],
        )
        self.nodes_health = Gauge(
            "goldpinger_nodes_health_total",
            "Number of nodes seen as healthy/unhealthy from this instance's POV",
            ["goldpinger_instance", "status"],
        )
        self.cluster_health = Gauge(
            "goldpinger_cluster_health_total",
            "1 if all check pass, 0 otherwise",
            ["goldpinger_instance"],
        )
        self.peers_response_time = Histogram(
            "goldpinger_peers_response_time_s",
            "Histogram of response times from other hosts, when making peer calls",
            ["goldpinger_instance", "call_type", "host_ip", "pod_ip", "hostName"],
        )
        self.kubernetes_response_time = Histogram(
            "goldpinger_kube_master_response_time_s",
            "Histogram of response times from kubernetes API server, when listing other instances",
            ["goldpinger_instance"],
        )
        self.errors = Counter(
            "goldpinger_errors_total",
            "Statistics of errors per instance",
            ["goldpinger_instance", "type"],
        )
        self.dns_errors = Counter(
            "goldpinger_dns_errors_total",
            "Statistics of DNS errors per instance",
            ["goldpinger_instance", "host"],
        )
        self.telnet_errors = Counter(
            "goldpinger_telnet_errors_total",
            "Statistics of telnet errors per instance",
            ["goldpinger_instance", "host"],
        )
        self.els_errors = Counter(
            "goldpinger_els_errors_total",
            "Statistics of els errors per instance",
            ["goldpinger_instance", "host"],
        )
        self.telnet_response_time = Histogram(
            "goldpinger_telnet_response_time_s",
            "Histogram of response times from telnet services",
            ["goldpinger_instance", "host"],
        )
        self.els_response_time = Histogram(
            "goldpinger_els_response_time_s",
            "Histogram of response times from els services",
            ["goldpinger_instance", "host"],
        )
        self.telnet_connectivity = Gauge(
            "goldpinger_telnet_connectivity",
            "1 if connectivity pass, 0 otherwise",
            ["goldpinger_instance", "host"],
        )
        self.els_connectivity = Gauge(
            "goldpinger_els_connectivity",
            "1 if connectivity pass, 0 otherwise",
            ["goldpinger_instance", "host"],
        )
        self.peer_connectivity = Gauge(
            "goldpinger_peer_connectivity",
            "Peer connectivity status",
            ["goldpinger_instance", "host"],
        )
        self.families: list[_Family] = [
            self.stats,
            self.nodes_health,
            self.cluster_health,
            self.peers_response_time,
            self.kubernetes_response_time,
            self.errors,
            self.dns_errors,
            self.els_errors,
            self.telnet_errors,
            self.els_response_time,
            self.telnet_response_time,
            self.telnet_connectivity,
            self.els_connectivity,
            self.peer_connectivity,
        ]

    def get_stats(self) -> PingResults:
        """The ping answer: only the boot time; call counts live in the metrics."""
        return PingResults(boot_time=self.boot_time)

    def count_call(self, group: str, call: str) -> None:
        self.stats.inc(self.hostname, group, call)

    def count_healthy_unhealthy_nodes(self, healthy: float, unhealthy: float) -> None:
        self.nodes_health.set(healthy, self.hostname, "healthy")
        self.nodes_health.set(unhealthy, self.hostname, "unhealthy")

    def set_cluster_health(self, healthy: bool) -> None:
        self.cluster_health.set(1.0 if healthy else 0.0, self.hostname)

    def count_error(self, error_type: str) -> None:
        self.errors.inc(self.hostname, error_type)

    def count_dns_error(self, host: str) -> None:
        self.dns_errors.inc(self.hostname, host)

    def count_telnet_error(self, host: str) -> None:
        self.telnet_errors.inc(self.hostname, host)

    def count_els_error(self, host: str) -> None:
        self.els_errors.inc(self.hostname, host)

    def kubernetes_calls_timer(self) -> Timer:
        hostname = self.hostname
        return Timer(lambda seconds: self.kubernetes_response_time.observe(seconds, hostname))

    def peers_calls_timer(self, call_type: str, host_ip: str, pod_ip: str) -> Timer:
        hostname = self.hostname
        return Timer(
            lambda seconds: self.peers_response_time.observe(
                seconds, hostname, call_type, host_ip, pod_ip, ""
            )
        )

    def telnet_calls_timer(self, host: str) -> Timer:
        hostname = self.hostname
        return Timer(lambda seconds: self.telnet_response_time.observe(seconds, hostname, host))

    def els_calls_timer(self, host: str) -> Timer:
        hostname = self.hostname
        return Timer(lambda seconds: self.els_response_time.observe(seconds, hostname, host))

    def set_telnet_connectivity_status(self, healthy: bool, host: str) -> None:
        self.telnet_connectivity.set(1.0 if healthy else 0.0, self.hostname, host)

    def set_els_connectivity_status(self, healthy: bool, host: str) -> None:
        self.els_connectivity.set(1.0 if healthy else 0.0, self.hostname, host)

    def set_peer_connectivity_status(self, healthy: bool, host: str) -> None:
        self.peer_connectivity.set(1.0 if healthy else 0.0, self.hostname, host)

    def exposition(self) -> str:
        """All metrics in the Prometheus text format, families sorted by name."""
        return "".join(f.exposition() for f in sorted(self.families, key=lambda f: f.name))