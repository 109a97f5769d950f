"""Discovering peer pods through the Kubernetes API."""

from __future__ import annotations

import ipaddress
import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import quote

import requests

from .config import GoldpingerConfig
from .pod_selector import select_pods as _select_pods
from .stats import Metrics

logger = logging.getLogger(__name__)

POD_NAMESPACE_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
RUNNING_PODS_SELECTOR = "status.phase=Running"
_NODE_ADDRESS_TYPES = ("InternalIP", "ExternalIP")


@dataclass(frozen=True)
class GoldpingerPod:
    """The basic facts needed to ping one peer pod."""

    name: str
    pod_ip: str = ""
    host_ip: str = ""
    host_name: str = ""


def read_pod_namespace(path: str = POD_NAMESPACE_PATH) -> str:
    """The namespace this pod runs in, or "" when it cannot be read."""
    try:
        with open(path, encoding="utf-8") as handle:
            return handle.read()
    except OSError as exc:
        logger.warning("Unable to determine namespace: %s", exc)
        return ""


def _section(obj: Any, key: str) -> Mapping[str, Any]:
    value = obj.get(key) if isinstance(obj, Mapping) else None
    return value if isinstance(value, Mapping) else {}


def get_ip_family(ip: str) -> str:
    """"4" for an IPv4 address, "6" for IPv6, "" for anything else."""
    if isinstance(ip, str) and "%" not in ip:
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            pass
        else:
            if isinstance(address, ipaddress.IPv4Address) or address.ipv4_mapped is not None:
                return "4"
            return "6"
    logger.error("Error determining IP family: %r", ip)
    return ""


def ip_matches_config(ip: str, ip_version: str) -> bool:
    """Whether ``ip`` belongs to the configured IP version."""
    return get_ip_family(ip) == ip_version


def get_pod_ip(pod: Mapping[str, Any], ip_version: str) -> str:
    """The pod's address of the configured IP version, or "" if it has none."""
    status = _section(pod, "status")
    primary = status.get("podIP") or ""
    if ip_matches_config(primary, ip_version):
        return primary
    chosen = ""
    for entry in status.get("podIPs") or []:
        candidate = entry.get("ip", "") if isinstance(entry, Mapping) else ""
        if ip_matches_config(candidate, ip_version):
            chosen = candidate
    return chosen


def get_host_name(pod: Mapping[str, Any]) -> str:
    """The name of the node the pod is scheduled on."""
    return _section(pod, "spec").get("nodeName") or ""


def get_pod_node_name(pod: Mapping[str, Any], display_node_name: bool) -> str:
    """The label to show for a pod: its node name or its own name."""
    if display_node_name:
        return get_host_name(pod)
    return _section(pod, "metadata").get("name") or ""


class KubernetesClient:
    """A minimal read-only client for the Kubernetes core API."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        verify: Any = True,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.verify = verify
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def _get(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.session.get(
            self.base_url + path,
            params=params,
            headers=headers,
            verify=self.verify,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def list_pods(self, namespace: str = "", label_selector: str = "", field_selector: str = "") -> list:
        """Pods matching the selectors; an empty namespace means all namespaces."""
        if namespace:
            path = f"/api/v1/namespaces/{quote(namespace, safe='')}/pods"
        else:
            path = "/api/v1/pods"
        params = {
            key: value
            for key, value in (("labelSelector", label_selector), ("fieldSelector", field_selector))
            if value
        }
        data = self._get(path, params)
        items = data.get("items") if isinstance(data, Mapping) else None
        return list(items or [])

    def get_node(self, name: str) -> Mapping[str, Any]:
        """The node object called ``name``."""
        if not name:
            raise ValueError("resource name may not be empty")
        return self._get(f"/api/v1/nodes/{quote(name, safe='')}")


class PodDiscovery:
    """Lists the peer pods and resolves their addresses for the configured IP version."""

    def __init__(self, config: GoldpingerConfig, client: Any, metrics: Optional[Metrics] = None):
        self.config = config
        self.client = client
        self.metrics = metrics if metrics is not None else Metrics(config.hostname)
        self._node_ips: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_host_ip(self, pod: Mapping[str, Any]) -> str:
        """The host address of the configured IP version, looking at the node if needed."""
        version = self.config.primary_ip_version()
        host_ip = _section(pod, "status").get("hostIP") or ""
        if ip_matches_config(host_ip, version):
            return host_ip
        node_name = get_host_name(pod)
        with self._lock:
            if node_name in self._node_ips:
                return self._node_ips[node_name]

        timer = self.metrics.kubernetes_calls_timer()
        try:
            node = self.client.get_node(node_name)
        except (requests.RequestException, ValueError) as exc:
            logger.error("error getting node %r: %s", node_name, exc)
            self.metrics.count_error("kubernetes_api")
            return host_ip
        timer.observe_duration()

        chosen = ""
        for address in _section(node, "status").get("addresses") or []:
            if not isinstance(address, Mapping):
                continue
            candidate = address.get("address", "")
            if address.get("type") in _NODE_ADDRESS_TYPES and ip_matches_config(candidate, version):
                chosen = candidate
        with self._lock:
            self._node_ips[node_name] = chosen
        logger.info("node %r has host IP %r", node_name, chosen)
        return chosen

    def get_all_pods(self) -> dict[str, GoldpingerPod]:
        """Every running peer pod, keyed by pod name."""
        timer = self.metrics.kubernetes_calls_timer()
        try:
            items = self.client.list_pods(
                self.config.namespace or "", self.config.label_selector, RUNNING_PODS_SELECTOR
            )
        except (requests.RequestException, ValueError) as exc:
            logger.error("Error getting pods for selector %r: %s", self.config.label_selector, exc)
            self.metrics.count_error("kubernetes_api")
            items = []
        else:
            timer.observe_duration()

        version = self.config.primary_ip_version()
        pods: dict[str, GoldpingerPod] = {}
        for item in items:
            name = _section(item, "metadata").get("name") or ""
            pods[name] = GoldpingerPod(
                name=name,
                pod_ip=get_pod_ip(item, version),
                host_ip=self.get_host_ip(item),
                host_name=get_host_name(item),
            )
        return pods

    def select_pods(self) -> dict[str, GoldpingerPod]:
        """The pods this instance should ping, chosen by rendezvous hashing."""
        return _select_pods(self.get_all_pods(), self.config.ping_number, self.config.pod_name)