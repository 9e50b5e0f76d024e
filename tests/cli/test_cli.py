"""Tests for the fargate-ops command line."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner, Result
from fakes import CLUSTER, NEW_IMAGE, SERVICE, FakeCloudFacade, healthy_task

from fargate_ops.cli.main import cli, main
from fargate_ops.core.errors import CredentialError
from fargate_ops.core.models import LogEvent, TargetHealthSnapshot, TaskHealth

FAST_DEPLOY_ENV = {
    "FARGATE_OPS_DEPLOY_POLL_INTERVAL_SECONDS": "0",
    "FARGATE_OPS_DEPLOY_GRACE_PERIOD_SECONDS": "0",
}


def _invoke(tmp_path: Path, *args: str, env: dict[str, str] | None = None) -> Result:
    runner = CliRunner()
    return runner.invoke(
        cli,
        ["--region", "us-east-1", "--log-file", str(tmp_path / "run.log"), *args],
        env=env,
    )


def _deploy_args(*extra: str) -> list[str]:
    return ["deploy", "-c", CLUSTER, "-s", SERVICE, "-i", NEW_IMAGE, *extra]


@patch("fargate_ops.cli.commands.deploy.create_facade")
def test_deploy_without_wait(
    mock_create_facade: MagicMock, facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """A deployment without waiting exits 0 and logs the run."""
    mock_create_facade.return_value = facade

    result = _invoke(tmp_path, *_deploy_args())

    assert result.exit_code == 0, result.output
    assert "Deployment initiated" in result.output
    assert mock_create_facade.call_args.args[0].region == "us-east-1"
    assert "Deployment finished" in (tmp_path / "run.log").read_text(encoding="utf-8")


@patch("fargate_ops.cli.commands.deploy.create_facade")
def test_deploy_invalid_timeout(mock_create_facade: MagicMock, tmp_path: Path) -> None:
    """A short timeout exits 1 without creating AWS clients."""
    result = _invoke(tmp_path, *_deploy_args("-t", "30"))

    assert result.exit_code == 1
    assert "Timeout must be" in result.output
    mock_create_facade.assert_not_called()


@patch("fargate_ops.cli.commands.deploy.create_facade")
def test_deploy_health_check_failure(
    mock_create_facade: MagicMock, facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """An unhealthy task after stabilising exits 4."""
    facade.tasks = [healthy_task("aaaaaaaa1111", TaskHealth.UNHEALTHY)]
    mock_create_facade.return_value = facade

    result = _invoke(tmp_path, *_deploy_args("--wait-stable"), env=FAST_DEPLOY_ENV)

    assert result.exit_code == 4, result.output
    assert "Rollback initiated" in result.output


@patch("fargate_ops.cli.commands.deploy.create_facade")
def test_deploy_without_credentials(mock_create_facade: MagicMock, tmp_path: Path) -> None:
    """Missing credentials exit 2 with guidance."""
    mock_create_facade.side_effect = CredentialError("no credentials")

    result = _invoke(tmp_path, *_deploy_args())

    assert result.exit_code == 2
    assert "AWS authentication failed" in result.output


@patch("fargate_ops.cli.commands.monitor.create_facade")
def test_monitor_json(
    mock_create_facade: MagicMock, facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """JSON mode prints one snapshot per iteration."""
    mock_create_facade.return_value = facade

    result = _invoke(
        tmp_path, "monitor", "-c", CLUSTER, "-s", SERVICE, "-m", "1", "--json"
    )

    assert result.exit_code == 0, result.output
    snapshot = json.loads(result.output.strip().splitlines()[-1])
    assert snapshot["iteration"] == 1
    assert snapshot["ecs_tasks"] == {"healthy": 2, "unhealthy": 0}
    assert snapshot["critical_issues"] is False


@patch("fargate_ops.cli.commands.monitor.create_facade")
def test_monitor_dashboard_critical(
    mock_create_facade: MagicMock, facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """A service without running tasks exits 3."""
    facade.tasks = []
    mock_create_facade.return_value = facade

    result = _invoke(tmp_path, "monitor", "-c", CLUSTER, "-s", SERVICE, "-m", "1")

    assert result.exit_code == 3, result.output
    assert "Critical issues detected" in result.output


@patch("fargate_ops.cli.commands.monitor.create_facade")
def test_monitor_invalid_interval(mock_create_facade: MagicMock, tmp_path: Path) -> None:
    """An interval below five seconds exits 1."""
    result = _invoke(tmp_path, "monitor", "-c", CLUSTER, "-s", SERVICE, "-i", "2")

    assert result.exit_code == 1
    mock_create_facade.assert_not_called()


@pytest.fixture
def logs_facade(facade: FakeCloudFacade) -> FakeCloudFacade:
    """Return a facade with a log group holding a few events."""
    facade.log_groups = {"/ecs/api"}
    facade.log_batches = [
        [
            LogEvent(timestamp=0, message="INFO GET /health HTTP/1.1 200", log_stream="ecs/api/a"),
            LogEvent(timestamp=1000, message="ERROR [db] timeout", log_stream="ecs/api/a"),
        ]
    ]
    return facade


@patch("fargate_ops.cli.commands.logs.create_facade")
def test_logs_fetch_with_output_file(
    mock_create_facade: MagicMock, logs_facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """Fetched events are printed, analysed and saved."""
    mock_create_facade.return_value = logs_facade
    output = tmp_path / "logs.txt"

    result = _invoke(tmp_path, "logs", "-g", "/ecs/api", "-o", str(output))

    assert result.exit_code == 0, result.output
    assert "ERROR [db] timeout" in result.output
    assert "Log levels" in result.output
    assert output.read_text(encoding="utf-8").splitlines() == [
        "[1970-01-01 00:00:00] [ecs/api/a] INFO GET /health HTTP/1.1 200",
        "[1970-01-01 00:00:01] [ecs/api/a] ERROR [db] timeout",
    ]


@patch("fargate_ops.cli.commands.logs.create_facade")
def test_logs_json(
    mock_create_facade: MagicMock, logs_facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """JSON mode prints one object per event and no analysis."""
    mock_create_facade.return_value = logs_facade

    result = _invoke(tmp_path, "logs", "-g", "/ecs/api", "--json", "--errors-only")

    assert result.exit_code == 0, result.output
    lines = [json.loads(line) for line in result.output.strip().splitlines()]
    assert [line["message"] for line in lines][-1] == "ERROR [db] timeout"
    assert logs_facade.calls_to("filter_log_events")[0][3] == "ERROR"


@patch("fargate_ops.cli.commands.logs.create_facade")
def test_logs_none_found(
    mock_create_facade: MagicMock, logs_facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """An empty window exits 3."""
    logs_facade.log_batches = []
    mock_create_facade.return_value = logs_facade

    result = _invoke(tmp_path, "logs", "-g", "/ecs/api")

    assert result.exit_code == 3


@patch("fargate_ops.cli.commands.logs.create_facade")
def test_logs_missing_group(
    mock_create_facade: MagicMock, logs_facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """An unknown log group exits 2."""
    mock_create_facade.return_value = logs_facade

    result = _invoke(tmp_path, "logs", "-g", "/ecs/missing")

    assert result.exit_code == 2


@patch("fargate_ops.cli.main.signal.signal")
def test_usage_errors_exit_1(mock_signal: MagicMock, tmp_path: Path) -> None:
    """Unknown options exit 1 so 2 stays reserved for AWS errors."""
    with pytest.raises(SystemExit) as exit_info:
        main(["--log-file", str(tmp_path / "run.log"), "deploy", "--bogus"])

    assert exit_info.value.code == 1


@patch("fargate_ops.cli.main.signal.signal")
def test_help_exits_0(mock_signal: MagicMock) -> None:
    """Help is not an error."""
    with pytest.raises(SystemExit) as exit_info:
        main(["--help"])

    assert exit_info.value.code == 0


@patch("fargate_ops.cli.commands.monitor.create_facade")
def test_monitor_alb_arn_alias(
    mock_create_facade: MagicMock, facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """The --alb-arn spelling selects the target group to check."""
    arn = "arn:aws:elasticloadbalancing:us-east-1:123456789012:targetgroup/api/abc123"
    facade.targets = [TargetHealthSnapshot(target_id="10.0.1.15", port=8080, state="healthy")]
    mock_create_facade.return_value = facade

    result = _invoke(
        tmp_path, "monitor", "-c", CLUSTER, "-s", SERVICE, "--alb-arn", arn, "-m", "1", "-j"
    )

    assert result.exit_code == 0, result.output
    assert facade.calls_to("describe_target_health") == [(arn,)]
    assert json.loads(result.output.strip().splitlines()[-1])["alb_targets"]["total"] == 1


@patch("fargate_ops.cli.commands.logs.create_facade")
def test_logs_analysis_covers_whole_window(
    mock_create_facade: MagicMock, logs_facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """The line limit trims the printed events but not the analysis."""
    mock_create_facade.return_value = logs_facade

    result = _invoke(tmp_path, "logs", "-g", "/ecs/api", "-n", "1")

    assert result.exit_code == 0, result.output
    assert "[1970-01-01 00:00:01]" not in result.output
    assert "Fetched 1 log entries" in result.output
    assert "Top error patterns" in result.output
    printed, analysed = logs_facade.calls_to("filter_log_events")
    assert printed[5] == 1
    assert analysed[3:] == (None, None, None)


@patch("fargate_ops.cli.commands.logs.create_facade")
def test_logs_tail_prints_backlog_first(
    mock_create_facade: MagicMock, logs_facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """Tailing shows recent events, then only newer ones, until interrupted."""
    backlog = [
        LogEvent(timestamp=1000, message="INFO backlog one", log_stream="ecs/api/a"),
        LogEvent(timestamp=2000, message="INFO backlog two", log_stream="ecs/api/a"),
    ]
    polled = [backlog[1], LogEvent(timestamp=3000, message="INFO polled", log_stream="ecs/api/a")]
    logs_facade.log_batches = [backlog, polled]
    logs_facade.failures["filter_log_events"] = [None, None, KeyboardInterrupt()]
    mock_create_facade.return_value = logs_facade

    result = _invoke(
        tmp_path,
        "logs",
        "-g",
        "/ecs/api",
        "--tail",
        env={"FARGATE_OPS_LOGS_TAIL_POLL_SECONDS": "0"},
    )

    assert result.exit_code == 0, result.output
    output = result.output
    assert output.index("backlog one") < output.index("backlog two") < output.index("polled")
    assert output.count("backlog two") == 1
    assert "Stopped by user" in output
    assert logs_facade.calls_to("filter_log_events")[1][1] == 2000


@patch("fargate_ops.cli.commands.logs.create_facade")
def test_logs_tail_missing_group(
    mock_create_facade: MagicMock, logs_facade: FakeCloudFacade, tmp_path: Path
) -> None:
    """Tailing an unknown log group exits 2 instead of polling."""
    mock_create_facade.return_value = logs_facade

    result = _invoke(tmp_path, "logs", "-g", "/ecs/missing", "--tail")

    assert result.exit_code == 2
    assert "not found" in result.output
    assert "filter_log_events" not in logs_facade.call_names()
