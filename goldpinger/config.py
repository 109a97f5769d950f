"""Runtime configuration, read from the environment with the documented defaults."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Mapping, Optional

_INT_RE = re.compile(r"^[+-]?\d+$")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_int(key: str, value: str) -> int:
    if not _INT_RE.match(value):
        raise ValueError(f"invalid integer value {value!r} for {key}")
    return int(value)


def _parse_uint(key: str, value: str) -> int:
    number = _parse_int(key, value)
    if number < 0:
        raise ValueError(f"invalid unsigned value {value!r} for {key}")
    return number


def _parse_float(key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"invalid float value {value!r} for {key}") from None


def _parse_bool(key: str, value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"invalid boolean value {value!r} for {key}")


def _parse_list(key: str, value: str) -> list[str]:
    return [item for item in value.split(" ") if item]


def _parse_str(key: str, value: str) -> str:
    return value


def _env(name: str, parse: Callable[[str, str], Any], default: Any = None, factory: Any = None) -> Any:
    metadata = {"env": name, "parse": parse}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


@dataclass
class GoldpingerConfig:
    """Settings for one instance; every field has an environment variable."""

    static_file_path: str = _env("STATIC_FILE_PATH", _parse_str, "")
    kube_config_path: str = _env("KUBECONFIG", _parse_str, "")
    refresh_interval: int = _env("REFRESH_INTERVAL", _parse_int, 30)
    jitter_factor: float = _env("JITTER_FACTOR", _parse_float, 0.05)
    hostname: str = _env("HOSTNAME", _parse_str, "")
    pod_ip: str = _env("POD_IP", _parse_str, "")
    pod_name: str = _env("POD_NAME", _parse_str, "")
    ping_number: int = _env("PING_NUMBER", _parse_uint, 0)
    port: int = _env("CLIENT_PORT_OVERRIDE", _parse_int, 0)
    use_host_ip: bool = _env("USE_HOST_IP", _parse_bool, False)
    label_selector: str = _env("LABEL_SELECTOR", _parse_str, "app=goldpinger")
    namespace: Optional[str] = _env("NAMESPACE", _parse_str, None)
    display_node_name: bool = _env("DISPLAY_NODENAME", _parse_bool, False)
    dns_hosts: list[str] = _env("HOSTS_TO_RESOLVE", _parse_list, factory=list)
    telnet_hosts: list[str] = _env("TELNET_HOSTS", _parse_list, factory=list)
    els_hosts: list[str] = _env("ELS_HOSTS", _parse_list, factory=list)
    ip_versions: list[str] = _env("IP_VERSIONS", _parse_list, factory=list)
    ping_timeout_ms: int = _env("PING_TIMEOUT_MS", _parse_int, 300)
    check_timeout_ms: int = _env("CHECK_TIMEOUT_MS", _parse_int, 1000)
    check_all_timeout_ms: int = _env("CHECK_ALL_TIMEOUT_MS", _parse_int, 5000)
    kubernetes_client: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GoldpingerConfig":
        """Build a configuration from environment variables; bad values raise ValueError."""
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for spec in fields(cls):
            key = spec.metadata.get("env")
            if key is None or key not in environ:
                continue
            raw = environ[key]
            parse = spec.metadata["parse"]
            if raw == "" and parse not in (_parse_str, _parse_list):
                continue
            values[spec.name] = parse(key, raw)
        return cls(**values)

    def primary_ip_version(self) -> str:
        """The IP version used for pinging: the first one configured, "4" if none."""
        return self.ip_versions[0] if self.ip_versions else "4"