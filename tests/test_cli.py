"""
Tests for CLI commands — deploys, stack status/rollback, and global options.
"""

import json
from pathlib import Path

from click.testing import CliRunner

from shipwright.main import cli


def _invoke(config_file: Path, *args: str, **kwargs):
    return CliRunner().invoke(cli, ["--config", str(config_file), *args], **kwargs)


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for group in ("svc", "job", "env", "pipeline", "stack"):
            assert group in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_deploy_help_lists_shared_flags(self):
        result = CliRunner().invoke(cli, ["svc", "deploy", "--help"])
        assert result.exit_code == 0
        for flag in ("--diff", "--diff-autoapprove", "--allow-downgrade", "--no-rollback", "--detach", "--yes"):
            assert flag in result.output

    def test_outside_workspace(self, tmp_path: Path):
        result = _invoke(tmp_path / "shipwright.yml", "svc", "deploy", "-n", "api", "-e", "test")
        assert result.exit_code == 1
        assert "❌ Config file not found" in result.output


# ── Workload deploys ─────────────────────────────────────────────────


class TestSvcDeploy:
    def test_first_deploy(self, config_file: Path):
        result = _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test")
        assert result.exit_code == 0, result.output
        assert "✅ Deployed workload api (stack shop-test-api)." in result.output
        assert "shipwright stack status --stack-name shop-test-api" in result.output

    def test_service_name_is_picked_when_unique(self, config_file: Path):
        result = _invoke(config_file, "svc", "deploy", "-e", "test")
        assert result.exit_code == 0, result.output
        assert "workload api" in result.output

    def test_ambiguous_environment(self, config_file: Path):
        result = _invoke(config_file, "svc", "deploy", "-n", "api")
        assert result.exit_code == 2
        assert "more than one environment" in result.output

    def test_redeploy_without_changes(self, config_file: Path):
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test")
        result = _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", "--yes")
        assert result.exit_code == 0, result.output
        assert "✅ No infrastructure changes for workload api." in result.output
        assert "Set --force" in result.output

    def test_declined_redeploy(self, config_file: Path):
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test")
        result = _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", input="n\n")
        assert result.exit_code == 0, result.output
        assert "Are you sure you want to redeploy an existing workload: api?" in result.output
        assert "⊘ Deployment aborted for workload api." in result.output

    def test_downgrade_is_refused(self, config_file: Path):
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", env={"SHIPWRIGHT_TEMPLATE_VERSION": "v1.31.0"})
        result = _invoke(
            config_file, "svc", "deploy", "-n", "api", "-e", "test", "--yes",
            env={"SHIPWRIGHT_TEMPLATE_VERSION": "v1.30.0"},
        )
        assert result.exit_code == 1
        assert 'cannot downgrade workload "api" (currently in version v1.31.0) to version v1.30.0' in result.output
        assert "--allow-downgrade" in result.output

    def test_allow_downgrade(self, config_file: Path):
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", env={"SHIPWRIGHT_TEMPLATE_VERSION": "v1.31.0"})
        result = _invoke(
            config_file, "svc", "deploy", "-n", "api", "-e", "test", "--yes", "--allow-downgrade",
            env={"SHIPWRIGHT_TEMPLATE_VERSION": "v1.30.0"},
        )
        assert result.exit_code == 0, result.output
        assert "✅ Deployed workload api" in result.output

    def test_diff_then_autoapprove(self, config_file: Path):
        result = _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", "--diff", "--diff-autoapprove")
        assert result.exit_code == 0, result.output
        assert "+ AWSTemplateFormatVersion:" in result.output
        assert "Continue with the deployment?" not in result.output

    def test_diff_declined(self, config_file: Path):
        result = _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", "--diff", input="n\n")
        assert result.exit_code == 0, result.output
        assert "Continue with the deployment?" in result.output
        assert "⊘ Deployment aborted" in result.output

    def test_autoapprove_requires_diff(self, config_file: Path):
        result = _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", "--diff-autoapprove")
        assert result.exit_code == 2
        assert "--diff-autoapprove requires --diff" in result.output

    def test_json_output(self, config_file: Path):
        result = _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["outcome"] == "created"
        assert data["stack"] == "shop-test-api"
        assert data["apply"]["outcome"] == "created"

    def test_detach(self, config_file: Path):
        result = _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", "--detach")
        assert result.exit_code == 0, result.output
        assert "Started deployment of workload api" in result.output
        assert "Recommended follow-up actions" not in result.output

    def test_job_deploy(self, config_file: Path):
        result = _invoke(config_file, "job", "deploy", "-n", "report", "-e", "prod")
        assert result.exit_code == 0, result.output
        assert "✅ Deployed workload report (stack shop-prod-report)." in result.output


# ── Environment and pipeline deploys ─────────────────────────────────


class TestEnvAndPipelineDeploy:
    def test_env_deploy(self, config_file: Path):
        result = _invoke(config_file, "env", "deploy", "--name", "test")
        assert result.exit_code == 0, result.output
        assert "✅ Deployed environment test (stack shop-test)." in result.output

    def test_pipeline_deploy(self, config_file: Path):
        result = _invoke(config_file, "pipeline", "deploy")
        assert result.exit_code == 0, result.output
        assert "ACTION REQUIRED!" in result.output
        assert "✅ Deployed pipeline release (stack pipeline-shop-release)." in result.output
        assert "push" in result.output

    def test_pipeline_json_with_unknown_dependency(self, config_file: Path):
        config_file.write_text(config_file.read_text().replace(
            "        requires_approval: true\n",
            "        requires_approval: true\n"
            "        deployments:\n"
            "          api:\n"
            "            depends_on: [ghost]\n",
        ))
        result = _invoke(config_file, "pipeline", "deploy", "--json")
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        data = json.loads(result.output)
        assert "deployment ghost is not part of the stage" in data["error"]
        assert "stages" not in data

    def test_unknown_pipeline(self, config_file: Path):
        result = _invoke(config_file, "pipeline", "deploy", "--name", "ghost")
        assert result.exit_code == 1
        assert "❌ pipeline ghost not found" in result.output


# ── Stack status and rollback ────────────────────────────────────────


class TestStackCommands:
    def test_status_empty(self, config_file: Path):
        result = _invoke(config_file, "stack", "status")
        assert result.exit_code == 0
        assert "No stacks deployed." in result.output

    def test_status_after_deploy(self, config_file: Path):
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test")
        result = _invoke(config_file, "stack", "status")
        assert result.exit_code == 0
        assert "📦 Stacks: 1" in result.output
        assert "shop-test-api" in result.output
        assert "CREATE_COMPLETE" in result.output

    def test_status_json(self, config_file: Path):
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test")
        result = _invoke(config_file, "stack", "status", "-s", "shop-test-api", "--json")
        data = json.loads(result.output)
        assert data["stacks"][0]["version"] == "v1.30.0"

    def test_status_unknown_stack(self, config_file: Path):
        result = _invoke(config_file, "stack", "status", "-s", "shop-test-ghost")
        assert result.exit_code == 1

    def test_rollback(self, config_file: Path):
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test")
        (config_file.parent / "api" / "main.py").write_text("print('v2')\n")
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test", "--yes")

        result = _invoke(config_file, "stack", "rollback", "--stack-name", "shop-test-api")
        assert result.exit_code == 0, result.output
        assert "✅ Rolled back stack shop-test-api to its previous configuration." in result.output

    def test_rollback_without_history(self, config_file: Path):
        _invoke(config_file, "svc", "deploy", "-n", "api", "-e", "test")
        result = _invoke(config_file, "stack", "rollback", "--stack-name", "shop-test-api")
        assert result.exit_code == 1
        assert "no previous configuration" in result.output

    def test_rollback_requires_stack_name(self, config_file: Path):
        result = _invoke(config_file, "stack", "rollback")
        assert result.exit_code == 2
