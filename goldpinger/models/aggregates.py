"""Aggregated results: check-all reports, cluster health and the health check."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from .results import (
    CheckResults,
    DnsResult,
    ValidationError,
    _combine,
    _datetime_errors,
    _ipv4_errors,
    _put,
    _raise_if,
    _read_datetime,
    _require_mapping,
    format_datetime,
)


def _read_ok(data: Mapping[str, Any]) -> Optional[bool]:
    ok = data.get("OK")
    return bool(ok) if ok is not None else None


def _read_strings(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(key, "in body must be of type array")
    return [str(item) for item in value]


@dataclass
class CheckAllPodResult:
    """What one peer reported when asked for its own check results."""

    host_ip: str = ""
    ok: Optional[bool] = None
    pod_ip: str = ""
    error: str = ""
    response: Optional[CheckResults] = None
    status_code: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "HostIP", self.host_ip)
        if self.ok is not None:
            out["OK"] = self.ok
        _put(out, "PodIP", self.pod_ip)
        _put(out, "error", self.error)
        if self.response is not None:
            out["response"] = self.response.to_dict()
        _put(out, "status-code", self.status_code)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CheckAllPodResult":
        data = _require_mapping(data)
        response = data.get("response")
        try:
            parsed = CheckResults.from_dict(response) if response is not None else None
        except ValidationError as exc:
            raise exc.prefixed("response") from None
        return cls(
            host_ip=data.get("HostIP") or "",
            ok=_read_ok(data),
            pod_ip=data.get("PodIP") or "",
            error=data.get("error") or "",
            response=parsed,
            status_code=int(data.get("status-code", 0)),
        )

    def _errors(self) -> list[ValidationError]:
        errors = _ipv4_errors("HostIP", self.host_ip)
        errors += _ipv4_errors("PodIP", self.pod_ip)
        if self.response is not None:
            nested = _combine(self.response._errors())
            if nested is not None:
                errors.append(nested.prefixed("response"))
        return errors

    def validate(self) -> None:
        _raise_if(self._errors())


@dataclass
class HostEntry:
    """A peer that took part in a check-all: its pod name and addresses."""

    host_ip: str = ""
    pod_ip: str = ""
    pod_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "hostIP", self.host_ip)
        _put(out, "podIP", self.pod_ip)
        _put(out, "podName", self.pod_name)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HostEntry":
        data = _require_mapping(data)
        return cls(
            host_ip=data.get("hostIP") or "",
            pod_ip=data.get("podIP") or "",
            pod_name=data.get("podName") or "",
        )

    def _errors(self) -> list[ValidationError]:
        return _ipv4_errors("hostIP", self.host_ip) + _ipv4_errors("podIP", self.pod_ip)

    def validate(self) -> None:
        _raise_if(self._errors())


@dataclass
class CheckAllResults:
    """Every peer's check results, plus DNS results grouped by host then pod."""

    ok: Optional[bool] = None
    dns_results: dict[str, dict[str, DnsResult]] = field(default_factory=dict)
    hosts: list[HostEntry] = field(default_factory=list)
    hosts_healthy: int = 0
    hosts_number: int = 0
    responses: dict[str, CheckAllPodResult] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.ok is not None:
            out["OK"] = self.ok
        if self.dns_results:
            out["dnsResults"] = {
                host: {pod: result.to_dict() for pod, result in per_pod.items()}
                for host, per_pod in self.dns_results.items()
            }
        out["hosts"] = [entry.to_dict() for entry in self.hosts]
        _put(out, "hosts-healthy", self.hosts_healthy)
        _put(out, "hosts-number", self.hosts_number)
        if self.responses:
            out["responses"] = {name: r.to_dict() for name, r in self.responses.items()}
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CheckAllResults":
        data = _require_mapping(data)
        dns: dict[str, dict[str, DnsResult]] = {}
        for host, per_pod in _require_mapping(data.get("dnsResults") or {}).items():
            dns[host] = {}
            for pod, value in _require_mapping(per_pod).items():
                try:
                    dns[host][pod] = DnsResult.from_dict(value)
                except ValidationError as exc:
                    raise exc.prefixed(f"dnsResults.{host}.{pod}") from None
        hosts: list[HostEntry] = []
        raw_hosts = data.get("hosts") or []
        if not isinstance(raw_hosts, list):
            raise ValidationError("hosts", "in body must be of type array")
        for index, value in enumerate(raw_hosts):
            if value is None:
                continue
            try:
                hosts.append(HostEntry.from_dict(value))
            except ValidationError as exc:
                raise exc.prefixed(f"hosts.{index}") from None
        responses: dict[str, CheckAllPodResult] = {}
        for name, value in _require_mapping(data.get("responses") or {}).items():
            try:
                responses[name] = CheckAllPodResult.from_dict(value)
            except ValidationError as exc:
                raise exc.prefixed(f"responses.{name}") from None
        return cls(
            ok=_read_ok(data),
            dns_results=dns,
            hosts=hosts,
            hosts_healthy=int(data.get("hosts-healthy", 0)),
            hosts_number=int(data.get("hosts-number", 0)),
            responses=responses,
        )

    def _dns_error(self) -> Optional[ValidationError]:
        for per_pod in self.dns_results.values():
            for pod, result in per_pod.items():
                if result == DnsResult():
                    return ValidationError(pod, "in body is required")
        return None

    def _hosts_error(self) -> Optional[ValidationError]:
        for index, entry in enumerate(self.hosts):
            if entry == HostEntry():
                continue
            nested = _combine(entry._errors())
            if nested is not None:
                return nested.prefixed(f"hosts.{index}")
        return None

    def _responses_error(self) -> Optional[ValidationError]:
        for name, result in self.responses.items():
            path = f"responses.{name}"
            if result == CheckAllPodResult():
                return ValidationError(path, "in body is required")
            nested = _combine(result._errors())
            if nested is not None:
                return nested.prefixed(path)
        return None

    def validate(self) -> None:
        errors = [self._dns_error(), self._hosts_error(), self._responses_error()]
        _raise_if([e for e in errors if e is not None])

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str | bytes) -> "CheckAllResults":
        return cls.from_dict(json.loads(text))


@dataclass
class ClusterHealthResults:
    """A binary verdict on the whole cluster, with the nodes behind it."""

    ok: bool = False
    duration_ns: int = 0
    generated_at: Optional[datetime] = None
    nodes_healthy: list[str] = field(default_factory=list)
    nodes_total: int = 0
    nodes_unhealthy: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"OK": self.ok}
        _put(out, "duration-ns", self.duration_ns)
        if self.generated_at is not None:
            out["generated-at"] = format_datetime(self.generated_at)
        out["nodesHealthy"] = list(self.nodes_healthy)
        _put(out, "nodesTotal", self.nodes_total)
        out["nodesUnhealthy"] = list(self.nodes_unhealthy)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClusterHealthResults":
        data = _require_mapping(data)
        return cls(
            ok=bool(data.get("OK", False)),
            duration_ns=int(data.get("duration-ns", 0)),
            generated_at=_read_datetime(data, "generated-at"),
            nodes_healthy=_read_strings(data, "nodesHealthy"),
            nodes_total=int(data.get("nodesTotal", 0)),
            nodes_unhealthy=_read_strings(data, "nodesUnhealthy"),
        )

    def validate(self) -> None:
        errors: list[ValidationError] = []
        # A required boolean counts as missing when it holds its zero value.
        if not self.ok:
            errors.append(ValidationError("OK", "in body is required"))
        errors += _datetime_errors("generated-at", self.generated_at)
        _raise_if(errors)


@dataclass
class HealthCheckResults:
    """The answer to the liveness probe."""

    ok: Optional[bool] = None
    duration_ns: int = 0
    generated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.ok is not None:
            out["OK"] = self.ok
        _put(out, "duration-ns", self.duration_ns)
        if self.generated_at is not None:
            out["generated-at"] = format_datetime(self.generated_at)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HealthCheckResults":
        data = _require_mapping(data)
        return cls(
            ok=_read_ok(data),
            duration_ns=int(data.get("duration-ns", 0)),
            generated_at=_read_datetime(data, "generated-at"),
        )

    def validate(self) -> None:
        _raise_if(_datetime_errors("generated-at", self.generated_at))