"""Result models exchanged between peers: ping, pod, DNS, telnet and ELS results."""

from __future__ import annotations

import ipaddress
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional


class ValidationError(ValueError):
    """A model failed validation; ``name`` is the dotted path of the field."""

    def __init__(self, name: str = "", detail: str = "", causes: Iterable["ValidationError"] = ()):
        self.name = name
        self.detail = detail
        self.causes = tuple(causes)
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.causes:
            return "validation failure list:\n" + "\n".join(str(c) for c in self.causes)
        return f"{self.name} {self.detail}" if self.name else self.detail

    def prefixed(self, prefix: str) -> "ValidationError":
        """Return a copy whose name (and those of its causes) sits under ``prefix``."""
        if self.causes:
            return ValidationError(causes=[cause.prefixed(prefix) for cause in self.causes])
        name = f"{prefix}.{self.name}" if self.name else prefix
        return ValidationError(name, self.detail)


def _combine(errors: list[ValidationError]) -> Optional[ValidationError]:
    if not errors:
        return None
    if len(errors) == 1:
        return errors[0]
    return ValidationError(causes=errors)


def _raise_if(errors: list[ValidationError]) -> None:
    error = _combine(errors)
    if error is not None:
        raise error


def _require_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError("", f"must be an object, got {type(data).__name__}")
    return data


_DATETIME_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?(Z|z|[+-]\d{2}:?\d{2})?$"
)


def format_datetime(value: datetime) -> str:
    """Render a timestamp as RFC 3339 with milliseconds; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat(timespec="milliseconds")
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def parse_datetime(text: str) -> datetime:
    """Parse an RFC 3339 timestamp; a missing zone is taken as UTC."""
    detail = f'must be of type date-time: "{text}"'
    if not isinstance(text, str):
        raise ValidationError("", detail)
    match = _DATETIME_RE.match(text.strip())
    if match is None:
        raise ValidationError("", detail)
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    if zone is None or zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        digits = zone[1:].replace(":", "")
        offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
        try:
            tz = timezone(sign * offset)
        except ValueError:
            raise ValidationError("", detail) from None
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), microsecond, tzinfo=tz
        )
    except ValueError:
        raise ValidationError("", detail) from None


def validate_ipv4(name: str, value: str) -> None:
    """Raise ValidationError unless ``value`` is empty or a dotted IPv4 address."""
    if not value:
        return
    try:
        ipaddress.IPv4Address(value)
    except (ipaddress.AddressValueError, ValueError, TypeError):
        raise ValidationError(name, f'in body must be of type ipv4: "{value}"') from None


def _ipv4_errors(name: str, value: str) -> list[ValidationError]:
    try:
        validate_ipv4(name, value)
    except ValidationError as exc:
        return [exc]
    return []


def _datetime_errors(name: str, value: Optional[datetime]) -> list[ValidationError]:
    if value is None or isinstance(value, datetime):
        return []
    return [ValidationError(name, f'in body must be of type date-time: "{value}"')]


def _read_datetime(data: Mapping[str, Any], key: str) -> Optional[datetime]:
    value = data.get(key)
    if value in (None, ""):
        return None
    try:
        return parse_datetime(value)
    except ValidationError as exc:
        raise exc.prefixed(key) from None


def _put(out: dict[str, Any], key: str, value: Any) -> None:
    """Store ``value`` unless it is empty, mirroring omitempty serialisation."""
    if value is None or value == "" or value == 0 and not isinstance(value, bool) or value == {}:
        return
    out[key] = value


@dataclass
class CallStats:
    """Counts of calls of each kind."""

    check: int = 0
    check_all: int = 0
    ping: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "check", self.check)
        _put(out, "check_all", self.check_all)
        _put(out, "ping", self.ping)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CallStats":
        data = _require_mapping(data)
        return cls(
            check=int(data.get("check", 0)),
            check_all=int(data.get("check_all", 0)),
            ping=int(data.get("ping", 0)),
        )


@dataclass
class PingResults:
    """Answer to a ping: when the peer booted and, optionally, its call stats."""

    boot_time: Optional[datetime] = None
    received: Optional[CallStats] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.boot_time is not None:
            out["boot_time"] = format_datetime(self.boot_time)
        if self.received is not None:
            out["received"] = self.received.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PingResults":
        data = _require_mapping(data)
        received = data.get("received")
        return cls(
            boot_time=_read_datetime(data, "boot_time"),
            received=CallStats.from_dict(received) if received is not None else None,
        )

    def _errors(self) -> list[ValidationError]:
        return _datetime_errors("boot_time", self.boot_time)

    def validate(self) -> None:
        _raise_if(self._errors())


@dataclass
class PodResult:
    """Outcome of pinging a single peer pod."""

    host_ip: str = ""
    ok: Optional[bool] = None
    ping_time: Optional[datetime] = None
    pod_ip: str = ""
    error: str = ""
    response: Optional[PingResults] = None
    response_time_ms: int = 0
    status_code: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "HostIP", self.host_ip)
        if self.ok is not None:
            out["OK"] = self.ok
        if self.ping_time is not None:
            out["PingTime"] = format_datetime(self.ping_time)
        _put(out, "PodIP", self.pod_ip)
        _put(out, "error", self.error)
        if self.response is not None:
            out["response"] = self.response.to_dict()
        _put(out, "response-time-ms", self.response_time_ms)
        _put(out, "status-code", self.status_code)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PodResult":
        data = _require_mapping(data)
        response = data.get("response")
        try:
            parsed_response = PingResults.from_dict(response) if response is not None else None
        except ValidationError as exc:
            raise exc.prefixed("response") from None
        ok = data.get("OK")
        return cls(
            host_ip=data.get("HostIP") or "",
            ok=bool(ok) if ok is not None else None,
            ping_time=_read_datetime(data, "PingTime"),
            pod_ip=data.get("PodIP") or "",
            error=data.get("error") or "",
            response=parsed_response,
            response_time_ms=int(data.get("response-time-ms", 0)),
            status_code=int(data.get("status-code", 0)),
        )

    def _errors(self) -> list[ValidationError]:
        errors = _ipv4_errors("HostIP", self.host_ip)
        errors += _datetime_errors("PingTime", self.ping_time)
        errors += _ipv4_errors("PodIP", self.pod_ip)
        if self.response is not None:
            nested = _combine(self.response._errors())
            if nested is not None:
                errors.append(nested.prefixed("response"))
        return errors

    def validate(self) -> None:
        _raise_if(self._errors())


@dataclass
class DnsResult:
    """Outcome of resolving one host name."""

    error: str = ""
    response_time_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "error", self.error)
        _put(out, "response-time-ms", self.response_time_ms)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DnsResult":
        data = _require_mapping(data)
        return cls(
            error=data.get("error") or "",
            response_time_ms=int(data.get("response-time-ms", 0)),
        )


@dataclass
class ElsResult:
    """Outcome of querying one search cluster's health."""

    error: str = ""
    ping: int = 0
    response_time_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "error", self.error)
        _put(out, "ping", self.ping)
        _put(out, "response-time-ms", self.response_time_ms)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ElsResult":
        data = _require_mapping(data)
        return cls(
            error=data.get("error") or "",
            ping=int(data.get("ping", 0)),
            response_time_ms=int(data.get("response-time-ms", 0)),
        )


@dataclass
class TelnetResult:
    """Outcome of opening a TCP connection to one host."""

    error: str = ""
    ping: int = 0
    response_time_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "error", self.error)
        _put(out, "ping", self.ping)
        _put(out, "response-time-ms", self.response_time_ms)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TelnetResult":
        data = _require_mapping(data)
        return cls(
            error=data.get("error") or "",
            ping=int(data.get("ping", 0)),
            response_time_ms=int(data.get("response-time-ms", 0)),
        )


@dataclass
class CheckResults:
    """One instance's view: ping results per pod and DNS results per host."""

    dns_results: dict[str, DnsResult] = field(default_factory=dict)
    pod_results: dict[str, PodResult] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.dns_results:
            out["dnsResults"] = {host: r.to_dict() for host, r in self.dns_results.items()}
        if self.pod_results:
            out["podResults"] = {name: r.to_dict() for name, r in self.pod_results.items()}
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CheckResults":
        data = _require_mapping(data)
        dns: dict[str, DnsResult] = {}
        for host, value in _require_mapping(data.get("dnsResults") or {}).items():
            try:
                dns[host] = DnsResult.from_dict(value)
            except ValidationError as exc:
                raise exc.prefixed(f"dnsResults.{host}") from None
        pods: dict[str, PodResult] = {}
        for name, value in _require_mapping(data.get("podResults") or {}).items():
            try:
                pods[name] = PodResult.from_dict(value)
            except ValidationError as exc:
                raise exc.prefixed(f"podResults.{name}") from None
        return cls(dns_results=dns, pod_results=pods)

    def _dns_error(self) -> Optional[ValidationError]:
        for host, result in self.dns_results.items():
            if result == DnsResult():
                return ValidationError(host, "in body is required").prefixed("dnsResults")
        return None

    def _pod_error(self) -> Optional[ValidationError]:
        for name, result in self.pod_results.items():
            path = f"podResults.{name}"
            if result == PodResult():
                return ValidationError(path, "in body is required")
            nested = _combine(result._errors())
            if nested is not None:
                return nested.prefixed(path)
        return None

    def _errors(self) -> list[ValidationError]:
        return [e for e in (self._dns_error(), self._pod_error()) if e is not None]

    def validate(self) -> None:
        _raise_if(self._errors())

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str | bytes) -> "CheckResults":
        return cls.from_dict(json.loads(text))