"""Tests for the health monitor checks, aggregation and loop."""

from datetime import UTC, datetime

import pytest
from fakes import CLUSTER, SERVICE, FakeCloudFacade, healthy_task

from fargate_ops.core.errors import CloudAPIError, InvalidInputError, NotFoundError
from fargate_ops.core.models import (
    FindingLevel,
    HealthVerdict,
    MonitorConfig,
    ServiceSnapshot,
    TargetCheck,
    TargetHealthSnapshot,
    TaskHealth,
)
from fargate_ops.core.monitor import (
    aggregate_verdict,
    check_service,
    check_targets,
    check_tasks,
    exit_code_for,
    iter_verdicts,
    run_checks,
    run_monitor,
    validate_config,
)

TARGET_GROUP = "arn:aws:elasticloadbalancing:us-east-1:123456789012:targetgroup/api/abc123"
NOW = datetime(2026, 3, 1, 12, 30, 0, tzinfo=UTC)


def _config(**overrides: object) -> MonitorConfig:
    config = MonitorConfig(cluster_name=CLUSTER, service_name=SERVICE, interval_seconds=5)
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def _verdict(facade: FakeCloudFacade, config: MonitorConfig | None = None) -> HealthVerdict:
    return run_checks(facade, config or _config(), iteration=1, now=lambda: NOW)


def test_healthy_service_without_target_group(facade: FakeCloudFacade) -> None:
    """Active service, matching counts and healthy tasks is not critical."""
    verdict = _verdict(facade)

    assert verdict.has_critical_issues is False
    assert verdict.task_check.healthy == 2
    assert verdict.target_check.skipped
    assert exit_code_for(verdict) == 0


def test_one_unhealthy_task_is_critical(facade: FakeCloudFacade) -> None:
    """A single UNHEALTHY task makes the verdict critical."""
    facade.tasks[1] = healthy_task("bbbbbbbb2222", TaskHealth.UNHEALTHY)

    verdict = _verdict(facade)

    assert verdict.has_critical_issues is True
    assert verdict.task_check.unhealthy == 1
    assert exit_code_for(verdict) == 3


def test_unknown_task_health_is_not_critical(facade: FakeCloudFacade) -> None:
    """UNKNOWN health counts as unhealthy without being critical."""
    facade.tasks[1] = healthy_task("bbbbbbbb2222", TaskHealth.UNKNOWN)

    verdict = _verdict(facade)

    assert verdict.has_critical_issues is False
    assert verdict.task_check.unhealthy == 1


def test_over_provisioning_is_not_critical(facade: FakeCloudFacade) -> None:
    """More running than desired tasks is informational only."""
    facade.tasks.append(healthy_task("cccccccc3333"))
    facade.service_states = [
        ServiceSnapshot(
            status="ACTIVE",
            running_count=3,
            desired_count=2,
            active_deployment_count=1,
        )
    ]

    verdict = _verdict(facade)

    assert verdict.has_critical_issues is False
    assert verdict.service_check.critical is False
    assert FindingLevel.INFO in {finding.level for finding in verdict.service_check.findings}


def test_under_provisioning_is_critical(facade: FakeCloudFacade) -> None:
    """Fewer running than desired tasks is critical."""
    facade.service_states = [
        ServiceSnapshot(
            status="ACTIVE",
            running_count=1,
            desired_count=2,
            pending_count=1,
            active_deployment_count=1,
        )
    ]

    assert _verdict(facade).has_critical_issues is True


def test_inactive_service_is_critical(facade: FakeCloudFacade) -> None:
    """A service that is not ACTIVE is critical."""
    facade.service_states = [
        ServiceSnapshot(
            status="DRAINING",
            running_count=2,
            desired_count=2,
            active_deployment_count=1,
        )
    ]

    assert _verdict(facade).has_critical_issues is True


def test_rollout_in_progress_is_a_warning(facade: FakeCloudFacade) -> None:
    """Two active deployments warn without being critical."""
    facade.service_states = [
        ServiceSnapshot(
            status="ACTIVE",
            running_count=2,
            desired_count=2,
            active_deployment_count=2,
        )
    ]

    check = check_service(facade, CLUSTER, SERVICE)

    assert check.critical is False
    assert any("deployment in progress" in finding.message for finding in check.findings)


def test_zero_running_tasks_is_critical(facade: FakeCloudFacade) -> None:
    """No running tasks is critical whatever the service reports."""
    facade.tasks = []

    verdict = _verdict(facade)

    assert verdict.task_check.critical is True
    assert verdict.has_critical_issues is True


def test_describe_service_failure_is_critical(facade: FakeCloudFacade) -> None:
    """A failed service read is critical for that iteration."""
    facade.failures["describe_service"] = NotFoundError("service not found")

    check = check_service(facade, CLUSTER, SERVICE)

    assert check.critical is True
    assert check.snapshot is None
    assert check.error == "service not found"


def test_task_describe_failure_is_critical(facade: FakeCloudFacade) -> None:
    """A failed task read is critical and the other tasks are still checked."""
    facade.failures["describe_tasks"] = [CloudAPIError("throttled")]

    check = check_tasks(facade, CLUSTER, SERVICE)

    assert check.critical is True
    assert check.healthy == 1
    assert len(facade.calls_to("describe_tasks")) == 2


def test_target_check_counts_unhealthy_targets(facade: FakeCloudFacade) -> None:
    """Any unhealthy target is critical."""
    facade.targets = [
        TargetHealthSnapshot(target_id="10.0.1.15", port=8080, state="healthy"),
        TargetHealthSnapshot(
            target_id="10.0.2.20",
            port=8080,
            state="unhealthy",
            reason="Target.ResponseCodeMismatch",
        ),
    ]

    check = check_targets(facade, TARGET_GROUP)

    assert (check.healthy, check.unhealthy, check.total) == (1, 1, 2)
    assert check.critical is True
    assert any("Target.ResponseCodeMismatch" in finding.message for finding in check.findings)


def test_target_check_is_skipped_without_arn(facade: FakeCloudFacade) -> None:
    """No target group means no ELB call."""
    check = check_targets(facade, None)

    assert check.skipped
    assert check.critical is False
    assert "describe_target_health" not in facade.call_names()


def test_aggregation_uses_only_the_given_checks(facade: FakeCloudFacade) -> None:
    """Aggregation is a pure combination of the three check results."""
    config = _config()
    service_check = check_service(facade, CLUSTER, SERVICE)
    task_check = check_tasks(facade, CLUSTER, SERVICE)

    healthy = aggregate_verdict(config, 1, NOW, service_check, task_check, TargetCheck())
    critical = aggregate_verdict(
        config, 2, NOW, service_check, task_check, TargetCheck(critical=True)
    )

    assert healthy.has_critical_issues is False
    assert critical.has_critical_issues is True


def test_snapshot_fields(facade: FakeCloudFacade) -> None:
    """The JSON snapshot carries the documented fields."""
    facade.targets = [TargetHealthSnapshot(target_id="10.0.1.15", port=8080, state="healthy")]

    snapshot = _verdict(facade, _config(target_group_arn=TARGET_GROUP)).to_snapshot()

    assert snapshot == {
        "timestamp": "2026-03-01T12:30:00Z",
        "iteration": 1,
        "cluster": CLUSTER,
        "service": SERVICE,
        "ecs_service": {
            "status": "ACTIVE",
            "running_count": 2,
            "desired_count": 2,
            "pending_count": 0,
            "deployments_count": 1,
        },
        "ecs_tasks": {"healthy": 2, "unhealthy": 0},
        "alb_targets": {"healthy": 1, "unhealthy": 0, "total": 1},
        "critical_issues": False,
    }


def test_max_iterations_uses_last_verdict_only(facade: FakeCloudFacade) -> None:
    """Exactly three cycles run and only the third decides the outcome."""
    facade.failures["list_running_tasks"] = [CloudAPIError("throttled"), CloudAPIError("throttled")]
    sleeps: list[float] = []
    seen: list[HealthVerdict] = []

    final = run_monitor(
        _config(max_iterations=3),
        facade,
        on_verdict=seen.append,
        sleep=sleeps.append,
        now=lambda: NOW,
    )

    assert [verdict.iteration for verdict in seen] == [1, 2, 3]
    assert [verdict.has_critical_issues for verdict in seen] == [True, True, False]
    assert final is seen[-1]
    assert exit_code_for(final) == 0
    assert sleeps == [5, 5]
    assert len(facade.calls_to("describe_service")) == 3


def test_iter_verdicts_is_unbounded_by_default(facade: FakeCloudFacade) -> None:
    """With no iteration limit the generator keeps producing verdicts."""
    verdicts = iter_verdicts(_config(), facade, sleep=lambda seconds: None, now=lambda: NOW)

    iterations = [next(verdicts).iteration for _ in range(5)]

    assert iterations == [1, 2, 3, 4, 5]


def test_interrupt_returns_last_verdict(facade: FakeCloudFacade) -> None:
    """Ctrl+C between iterations keeps the last completed verdict."""

    def interrupt(seconds: float) -> None:
        raise KeyboardInterrupt

    final = run_monitor(_config(), facade, sleep=interrupt, now=lambda: NOW)

    assert final is not None
    assert final.iteration == 1
    assert exit_code_for(None) == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"cluster_name": ""},
        {"service_name": ""},
        {"interval_seconds": 4},
        {"max_iterations": -1},
    ],
)
def test_invalid_config_is_rejected(overrides: dict[str, object]) -> None:
    """Invalid monitor input raises before any check runs."""
    with pytest.raises(InvalidInputError):
        validate_config(_config(**overrides))
