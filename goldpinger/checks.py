"""Checks served by the API: neighbours, all peers, cluster health and external hosts."""

from __future__ import annotations

import logging
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

import requests

from .client.operations import ApiError, HttpTransport, OperationsClient
from .config import GoldpingerConfig
from .k8s import GoldpingerPod
from .models.aggregates import (
    CheckAllPodResult,
    CheckAllResults,
    ClusterHealthResults,
    HealthCheckResults,
    HostEntry,
)
from .models.results import CheckResults, DnsResult, ElsResult, PodResult, TelnetResult
from .stats import Metrics

logger = logging.getLogger(__name__)

TELNET_PORT = 3306


def pick_pod_host_ip(pod_ip: str, host_ip: str, use_host_ip: bool) -> str:
    """The address to call a peer on: its host IP if configured, else its pod IP."""
    return host_ip if use_host_ip else pod_ip


def _join_host_port(host: str, port: int) -> str:
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


def make_client(host_ip: str, port: int) -> OperationsClient:
    """A client for the peer at ``host_ip``; an empty address raises ValueError."""
    if not host_ip:
        raise ValueError("Host or pod IP empty, can't make a call")
    return OperationsClient(HttpTransport(host=_join_host_port(host_ip, port)))


def health_check() -> HealthCheckResults:
    """A trivial OK answer proving the API is up."""
    generated_at = datetime.now(timezone.utc)
    start = time.perf_counter_ns()
    return HealthCheckResults(
        ok=True, duration_ns=time.perf_counter_ns() - start, generated_at=generated_at
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _resolve(host: str) -> None:
    socket.getaddrinfo(host, None)


def _dial(host: str) -> None:
    with socket.create_connection((host, TELNET_PORT)):
        pass


class ResultStore:
    """The latest ping result per pod, safe to share between threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: dict[str, PodResult] = {}

    def update(self, pod_name: str, result: PodResult) -> None:
        with self._lock:
            self._results[pod_name] = result

    def delete(self, pod_name: str) -> None:
        with self._lock:
            self._results.pop(pod_name, None)

    def snapshot(self) -> dict[str, PodResult]:
        """A copy of the current results."""
        with self._lock:
            return dict(self._results)


class Checker:
    """Runs the checks this instance answers for."""

    def __init__(
        self,
        config: GoldpingerConfig,
        discovery: Any = None,
        metrics: Optional[Metrics] = None,
        store: Optional[ResultStore] = None,
        client_factory: Callable[[str, int], Any] = make_client,
        resolve: Callable[[str], Any] = _resolve,
        dial: Callable[[str], Any] = _dial,
        els_session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.discovery = discovery
        self.metrics = metrics if metrics is not None else Metrics(config.hostname)
        self.store = store if store is not None else ResultStore()
        self._client_factory = client_factory
        self._resolve = resolve
        self._dial = dial
        self._els_session = els_session if els_session is not None else requests.Session()

    def _selected_pods(self) -> Mapping[str, GoldpingerPod]:
        if self.discovery is None:
            raise RuntimeError("no pod discovery configured")
        return self.discovery.select_pods()

    def check_neighbours(self) -> CheckResults:
        """The latest ping results, plus DNS results when hosts to resolve are set."""
        results = CheckResults(pod_results=self.store.snapshot())
        if self.config.dns_hosts:
            results.dns_results = self.check_dns()
        return results

    def check_neighbours_neighbours(self) -> CheckAllResults:
        """Ask every selected peer for its own check results."""
        return self.check_all_pods(self._selected_pods())

    def check_cluster(self) -> ClusterHealthResults:
        """A binary verdict: every peer answers OK and sees the expected nodes."""
        generated_at = datetime.now(timezone.utc)
        start = time.perf_counter_ns()
        output = ClusterHealthResults(ok=True, generated_at=generated_at)
        selected = self._selected_pods()
        expected = sorted(pod.host_ip for pod in selected.values())

        check_all = self.check_all_pods(selected)
        if not check_all.responses:
            output.ok = False
        for response in check_all.responses.values():
            if response.ok:
                output.nodes_healthy.append(response.host_ip)
            else:
                output.nodes_unhealthy.append(response.host_ip)
                output.ok = False
            output.nodes_total += 1
            if response.response is None:
                output.ok = False
                continue
            observed = sorted(peer.host_ip for peer in response.response.pod_results.values())
            if observed != expected:
                output.ok = False
        output.duration_ns = time.perf_counter_ns() - start
        return output

    def _check_pod(self, pod: GoldpingerPod) -> CheckAllPodResult:
        self.metrics.count_call("made", "check")
        timer = self.metrics.peers_calls_timer("check", pod.host_ip, pod.pod_ip)
        target = pick_pod_host_ip(pod.pod_ip, pod.host_ip, self.config.use_host_ip)
        try:
            client = self._client_factory(target, self.config.port)
            response = client.check_service_pods(timeout=self.config.check_timeout_ms / 1000)
        except (ValueError, ApiError) as exc:
            logger.warning("Check of %s failed: %s", pod.name, exc)
            self.metrics.count_error("checkAll")
            return CheckAllPodResult(
                ok=False, pod_ip=pod.pod_ip, host_ip=pod.host_ip, error=str(exc)
            )
        timer.observe_duration()
        return CheckAllPodResult(ok=True, pod_ip=pod.pod_ip, host_ip=pod.host_ip, response=response)

    def check_all_pods(self, pods: Mapping[str, GoldpingerPod]) -> CheckAllResults:
        """Call ``/check`` on every pod concurrently and gather a detailed report."""
        result = CheckAllResults()
        entries = list(pods.items())
        if not entries:
            return result
        with ThreadPoolExecutor(max_workers=len(entries)) as pool:
            outcomes = list(pool.map(self._check_pod, (pod for _, pod in entries)))
        for (name, pod), outcome in zip(entries, outcomes):
            result.responses[name] = outcome
            result.hosts.append(HostEntry(host_ip=pod.host_ip, pod_ip=pod.pod_ip, pod_name=name))
            if outcome.response is not None:
                for host, dns in outcome.response.dns_results.items():
                    result.dns_results.setdefault(host, {})[name] = dns
        return result

    def check_dns(self) -> dict[str, DnsResult]:
        """Resolve every configured host, timing each lookup."""
        results: dict[str, DnsResult] = {}
        for host in self.config.dns_hosts:
            result = DnsResult()
            start = time.perf_counter()
            try:
                self._resolve(host)
            except OSError as exc:
                result.error = str(exc)
                self.metrics.count_dns_error(host)
            result.response_time_ms = _elapsed_ms(start)
            results[host] = result
        return results

    def check_telnet(self) -> dict[str, TelnetResult]:
        """Open a TCP connection to each telnet host; only successes are reported."""
        results: dict[str, TelnetResult] = {}
        for host in self.config.telnet_hosts:
            start = time.perf_counter()
            try:
                self._dial(host)
            except OSError as exc:
                logger.warning("telnet to %s failed: %s", host, exc)
                self.metrics.count_telnet_error(host)
                self.metrics.set_telnet_connectivity_status(False, host)
                continue
            seconds = time.perf_counter() - start
            self.metrics.telnet_response_time.observe(seconds, self.metrics.hostname, host)
            self.metrics.set_telnet_connectivity_status(True, host)
            results[host] = TelnetResult(response_time_ms=int(seconds * 1000))
        return results

    def check_els(self) -> dict[str, ElsResult]:
        """Query each search cluster's health; only successes are reported."""
        results: dict[str, ElsResult] = {}
        for host in self.config.els_hosts:
            start = time.perf_counter()
            try:
                response = self._els_session.get(
                    host.rstrip("/") + "/_cluster/health",
                    params={"pretty": "true", "human": "true"},
                    verify=False,
                )
            except requests.RequestException as exc:
                logger.warning("cluster health of %s failed: %s", host, exc)
                response = None
            seconds = time.perf_counter() - start
            if response is None or response.status_code != 200:
                self.metrics.count_els_error(host)
                self.metrics.set_els_connectivity_status(False, host)
                continue
            self.metrics.els_response_time.observe(seconds, self.metrics.hostname, host)
            self.metrics.set_els_connectivity_status(True, host)
            results[host] = ElsResult(response_time_ms=int(seconds * 1000))
        return results