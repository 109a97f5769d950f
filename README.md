# goldpinger

A library for checking network connectivity between the pods of a
Kubernetes cluster. Each instance asks its peers for their view of the
cluster, gathers the answers, and reduces them to a single healthy or
unhealthy verdict. It also publishes metrics in the Prometheus text format.

The only runtime dependency is `requests`.

## Modules

- `goldpinger.models.results`: the result documents a peer sends back.
  These are `CallStats`, `PingResults`, `PodResult`, `DnsResult`,
  `ElsResult`, `TelnetResult` and `CheckResults`. Each has `to_dict()` and
  `from_dict()`. `CheckResults` also has `to_json()` and `from_json()`.
  `validate()` raises `ValidationError` when an IPv4 field is malformed or
  a required entry is empty. Time stamps go through `format_datetime()`,
  which writes RFC 3339 with milliseconds, and `parse_datetime()`.
- `goldpinger.models.aggregates`: the aggregated reports. These are
  `CheckAllPodResult`, `HostEntry`, `CheckAllResults` (which has JSON
  helpers), `ClusterHealthResults` and `HealthCheckResults`.
- `goldpinger.client.operations`: an HTTP client for a peer's endpoints.
  `OperationsClient.ping()` calls `/ping`, `check_service_pods()` calls
  `/check` and `check_all_pods()` calls `/check_all`. They go through an
  `HttpTransport`. Network failures, any status other than 200, and bad
  payloads all raise `ApiError`.
- `goldpinger.config`: `GoldpingerConfig`. `GoldpingerConfig.from_env()`
  reads environment variables such as `REFRESH_INTERVAL` (default 30),
  `JITTER_FACTOR` (0.05), `PING_NUMBER` (0), `LABEL_SELECTOR`
  (`app=goldpinger`), `NAMESPACE`, `USE_HOST_IP`, `HOSTS_TO_RESOLVE`,
  `TELNET_HOSTS`, `ELS_HOSTS`, `IP_VERSIONS`, `PING_TIMEOUT_MS` (300),
  `CHECK_TIMEOUT_MS` (1000) and `CHECK_ALL_TIMEOUT_MS` (5000). List
  variables are separated by spaces. A value that does not parse raises
  `ValueError`.
- `goldpinger.stats`: `Counter`, `Gauge`, `Histogram` and `Timer`.
  `Metrics` holds all goldpinger metric families, with the instance
  hostname as a label. `Metrics.exposition()` renders them as text.
- `goldpinger.pod_selector`: 64-bit xxHash (`xxhash64`), rendezvous
  hashing (`Rendezvous`), and `select_pods()`.
- `goldpinger.k8s`: `KubernetesClient` is a small read-only client for the
  core API. `PodDiscovery` lists the running peer pods as `GoldpingerPod`
  values and picks addresses of the configured IP version. The module also
  has helpers: `get_ip_family()`, `ip_matches_config()`, `get_pod_ip()`,
  `get_host_name()`, `get_pod_node_name()` and `read_pod_namespace()`.
- `goldpinger.checks`: `Checker` runs the checks, `ResultStore` holds the
  latest ping result for each pod, and `health_check()` answers a liveness
  probe.

## Configuration

```python
from goldpinger.config import GoldpingerConfig

config = GoldpingerConfig.from_env({"IP_VERSIONS": "6 4", "PING_NUMBER": "3"})
config.primary_ip_version()   # "6"; it is "4" when IP_VERSIONS is not set
config.ping_number            # 3
```

## Choosing peers

When `ping_number` is 0, or is at least the number of pods, `select_pods`
returns every pod. Otherwise it uses rendezvous hashing over the pod names
to pick `ping_number` pods, keyed on `pod_name`. The same key always gets
the same peers.

```python
from goldpinger.pod_selector import Rendezvous, select_pods

chosen = select_pods(all_pods, 3, "goldpinger-abcde")

ring = Rendezvous(["a", "b", "c"])
ring.lookup_n("goldpinger-abcde", 2)   # the two best nodes, best first
```

## Discovering pods

```python
from goldpinger.k8s import KubernetesClient, PodDiscovery

client = KubernetesClient("https://kubernetes.default.svc", token="token", verify=False)
discovery = PodDiscovery(config, client)
pods = discovery.select_pods()     # {pod name: GoldpingerPod}
```

Only pods in the `Running` phase are listed. When a pod's host IP is not of
the configured version, the node's `InternalIP` and `ExternalIP` addresses
are looked up, and the answer is cached per node.

## Running checks

```python
from goldpinger.checks import Checker, health_check

checker = Checker(config, discovery)
checker.check_neighbours()    # CheckResults from the ResultStore, plus DNS results
checker.check_all_pods(pods)  # calls /check on every pod concurrently
verdict = checker.check_cluster()
verdict.ok, verdict.nodes_healthy, verdict.nodes_unhealthy
```

`check_cluster()` sets `OK` to false in any of these cases:

- no peer answered;
- a peer answered but did not report OK;
- a peer returned no response;
- the host IPs a peer saw are not the expected set.

`check_dns()` resolves each configured host and times the lookup.
`check_telnet()` opens a TCP connection to port 3306 on each telnet host.
`check_els()` requests `/_cluster/health` from each search host. The telnet
and search checks report only the hosts that succeeded. Failures are
counted in the metrics and the connectivity gauge is set to 0.

## Metrics

```python
from goldpinger.stats import Metrics

metrics = Metrics("node-1")
metrics.count_call("made", "ping")
with metrics.kubernetes_calls_timer():
    ...
print(metrics.exposition())
```

## What this package does not do

The package has no command to run and no HTTP server for the `/ping`,
`/check`, `/check_all` or health endpoints. Nothing in it pings peers on a
schedule in the background. A caller has to make the pings, put each
result into a `ResultStore` with `update()` and remove it with `delete()`,
and serve the check results and metrics itself. There is no heatmap image
either.