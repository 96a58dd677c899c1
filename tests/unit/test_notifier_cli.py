"""Tests for the claim notifier CLI."""

from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from claim_notifier.cli import app
from claim_notifier.models.config import NotifierConfig, ThrottlePolicy
from claim_notifier.orchestration.result import (
    ClaimOutcome,
    ClaimState,
    PipelineResult,
)
from claim_notifier.utils.exceptions import ConfigError, FetchError

runner = CliRunner()


def make_config() -> NotifierConfig:
    return NotifierConfig(
        upstream_url="https://claims.example.com/open",
        upstream_api_key="secret",
        history_table="emails",
        queue_url="https://sqs.us-east-1.amazonaws.com/123/claims",
        policy=ThrottlePolicy(max_notifications=2, cooldown_hours=168),
    )


def make_result() -> PipelineResult:
    dispatched = ClaimOutcome(claim_id="C1", state=ClaimState.DISPATCHED)
    failed = ClaimOutcome(
        claim_id="C2",
        state=ClaimState.FAILED,
        error_type="history_query",
        error="History query failed: throttled (claim_id=C2)",
    )
    return PipelineResult(outcomes=[dispatched, failed])


class TestValidateCommand:
    def test_valid_configuration(self):
        with patch("claim_notifier.cli.validate.load_config", return_value=make_config()):
            result = runner.invoke(app, ["validate"])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.stdout
        assert "emails" in result.stdout
        assert "168h" in result.stdout

    def test_invalid_configuration_exits_non_zero(self):
        with patch(
            "claim_notifier.cli.utils.ConfigManager.load_config",
            side_effect=ConfigError("Missing required configuration: API_KEY"),
        ):
            result = runner.invoke(app, ["validate"])

        assert result.exit_code == 1
        assert "API_KEY" in result.stdout


class TestRunCommand:
    def test_reports_summary_and_errors(self):
        with patch(
            "claim_notifier.cli.run.load_config", return_value=make_config()
        ), patch(
            "claim_notifier.cli.run.run_invocation",
            new=AsyncMock(return_value=make_result()),
        ):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 0
        assert "dispatched: 1" in result.stdout
        assert "failed: 1" in result.stdout
        assert "C2: [history_query]" in result.stdout

    def test_reports_skipped_claims(self):
        skipped = PipelineResult(
            outcomes=[ClaimOutcome(claim_id="C1")], stopped_early=True
        )
        with patch(
            "claim_notifier.cli.run.load_config", return_value=make_config()
        ), patch(
            "claim_notifier.cli.run.run_invocation",
            new=AsyncMock(return_value=skipped),
        ):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 0
        assert "1 claim(s) not started" in result.stdout

    def test_fetch_failure_exits_non_zero(self):
        with patch(
            "claim_notifier.cli.run.load_config", return_value=make_config()
        ), patch(
            "claim_notifier.cli.run.run_invocation",
            new=AsyncMock(side_effect=FetchError("Upstream request failed: HTTP 401")),
        ):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert "Claim fetch failed" in result.stdout

    def test_unexpected_error_exits_non_zero(self):
        with patch(
            "claim_notifier.cli.run.load_config", return_value=make_config()
        ), patch(
            "claim_notifier.cli.run.run_invocation",
            new=AsyncMock(side_effect=RuntimeError("event loop broke")),
        ):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert "event loop broke" in result.stdout
