from datetime import datetime, timezone

import pytest

from goldpinger.models.aggregates import (
    CheckAllPodResult,
    CheckAllResults,
    ClusterHealthResults,
    HealthCheckResults,
    HostEntry,
)
from goldpinger.models.results import (
    CheckResults,
    DnsResult,
    PodResult,
    ValidationError,
)

WHEN = datetime(2021, 3, 4, 5, 6, 7, tzinfo=timezone.utc)


def _sample_all() -> CheckAllResults:
    return CheckAllResults(
        ok=True,
        dns_results={"example.com": {"pod-a": DnsResult(response_time_ms=3)}},
        hosts=[HostEntry(host_ip="10.0.0.1", pod_ip="10.1.0.1", pod_name="pod-a")],
        hosts_healthy=1,
        hosts_number=1,
        responses={
            "pod-a": CheckAllPodResult(
                host_ip="10.0.0.1",
                ok=True,
                pod_ip="10.1.0.1",
                response=CheckResults(
                    pod_results={"pod-a": PodResult(ok=True, status_code=200, ping_time=WHEN)}
                ),
            )
        },
    )


def test_check_all_pod_result_round_trip():
    result = CheckAllPodResult(host_ip="10.0.0.1", ok=False, pod_ip="10.1.0.1", error="boom")
    assert CheckAllPodResult.from_dict(result.to_dict()) == result


def test_check_all_pod_result_wire_keys():
    data = CheckAllPodResult(host_ip="10.0.0.1", ok=True, status_code=200).to_dict()
    assert set(data) == {"HostIP", "OK", "status-code"}


def test_check_all_pod_result_invalid_ips_collected():
    result = CheckAllPodResult(host_ip="bad", pod_ip="worse", ok=True)
    with pytest.raises(ValidationError) as info:
        result.validate()
    assert [c.name for c in info.value.causes] == ["HostIP", "PodIP"]


def test_check_all_pod_result_nested_error_is_prefixed():
    result = CheckAllPodResult(
        ok=True,
        response=CheckResults(pod_results={"p": PodResult(pod_ip="x", ok=True)}),
    )
    with pytest.raises(ValidationError) as info:
        result.validate()
    assert info.value.name == "response.podResults.p.PodIP"


def test_host_entry_round_trip_and_keys():
    entry = HostEntry(host_ip="10.0.0.2", pod_ip="10.1.0.2", pod_name="pod-b")
    data = entry.to_dict()
    assert set(data) == {"hostIP", "podIP", "podName"}
    assert HostEntry.from_dict(data) == entry


def test_host_entry_invalid_ip():
    with pytest.raises(ValidationError) as info:
        HostEntry(pod_ip="nope").validate()
    assert info.value.name == "podIP"


def test_check_all_results_json_round_trip():
    results = _sample_all()
    results.validate()
    assert CheckAllResults.from_json(results.to_json()) == results


def test_check_all_results_empty_serialises_hosts():
    assert CheckAllResults().to_dict() == {"hosts": []}


def test_check_all_results_required_response():
    results = CheckAllResults(responses={"pod-a": CheckAllPodResult()})
    with pytest.raises(ValidationError) as info:
        results.validate()
    assert info.value.name == "responses.pod-a"


def test_check_all_results_response_error_prefixed():
    results = CheckAllResults(responses={"pod-a": CheckAllPodResult(ok=True, host_ip="bad")})
    with pytest.raises(ValidationError) as info:
        results.validate()
    assert info.value.name == "responses.pod-a.HostIP"


def test_check_all_results_host_error_prefixed_by_index():
    results = CheckAllResults(hosts=[HostEntry(), HostEntry(host_ip="bad")])
    with pytest.raises(ValidationError) as info:
        results.validate()
    assert info.value.name == "hosts.1.hostIP"


def test_check_all_results_empty_dns_result_required():
    results = CheckAllResults(dns_results={"example.com": {"pod-a": DnsResult()}})
    with pytest.raises(ValidationError) as info:
        results.validate()
    assert info.value.name == "pod-a"


def test_check_all_results_combines_categories():
    results = CheckAllResults(
        hosts=[HostEntry(host_ip="bad")],
        responses={"pod-a": CheckAllPodResult()},
    )
    with pytest.raises(ValidationError) as info:
        results.validate()
    assert [c.name for c in info.value.causes] == ["hosts.0.hostIP", "responses.pod-a"]


def test_check_all_results_from_dict_bad_nested_datetime():
    data = {"responses": {"pod-a": {"response": {"podResults": {"p": {"PingTime": "nope"}}}}}}
    with pytest.raises(ValidationError) as info:
        CheckAllResults.from_dict(data)
    assert info.value.name == "responses.pod-a.response.podResults.p.PingTime"


def test_cluster_health_defaults_serialise_required_fields():
    assert ClusterHealthResults().to_dict() == {
        "OK": False,
        "nodesHealthy": [],
        "nodesUnhealthy": [],
    }


def test_cluster_health_round_trip():
    health = ClusterHealthResults(
        ok=True,
        duration_ns=42,
        generated_at=WHEN,
        nodes_healthy=["10.0.0.1"],
        nodes_total=2,
        nodes_unhealthy=["10.0.0.2"],
    )
    health.validate()
    assert ClusterHealthResults.from_dict(health.to_dict()) == health


def test_cluster_health_false_ok_fails_required():
    with pytest.raises(ValidationError) as info:
        ClusterHealthResults(ok=False).validate()
    assert info.value.name == "OK"


def test_cluster_health_bad_generated_at():
    with pytest.raises(ValidationError) as info:
        ClusterHealthResults.from_dict({"OK": True, "generated-at": "yesterday"})
    assert info.value.name == "generated-at"


def test_health_check_round_trip():
    health = HealthCheckResults(ok=True, duration_ns=7, generated_at=WHEN)
    health.validate()
    data = health.to_dict()
    assert set(data) == {"OK", "duration-ns", "generated-at"}
    assert HealthCheckResults.from_dict(data) == health


def test_health_check_empty_is_empty_object():
    assert HealthCheckResults().to_dict() == {}
    assert HealthCheckResults.from_dict({}) == HealthCheckResults()


def test_health_check_rejects_non_object():
    with pytest.raises(ValidationError):
        HealthCheckResults.from_dict(["OK"])