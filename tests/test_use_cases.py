"""
Tests for the deploy and stack use cases — full vertical slices.
"""

import textwrap
from pathlib import Path

import pytest

from shipwright.adapters.base import DeployedPipeline
from shipwright.adapters.mock import MockArtifactStep, MockPrompter, MockStackDeployer
from shipwright.adapters.render import YamlTemplateRenderer
from shipwright.adapters.workspace import WorkspaceConnectionLookup, WorkspaceEnvironmentStore
from shipwright.core.config.loader import ConfigError, load_workspace
from shipwright.core.errors import (
    ChangeSetEmptyError,
    DowngradeError,
    NotFoundError,
    ValidationError,
)
from shipwright.core.models import ApplyOutcome, NoticeKind
from shipwright.core.use_cases.deploy import (
    CONTINUE_PROMPT,
    DeployContext,
    DeployOptions,
    deploy_environment,
    deploy_pipeline,
    deploy_workload,
)
from shipwright.core.use_cases.stack import stack_rollback, stack_status


def _ctx(config_file: Path, deployer=None, prompter=None, version="v1.30.0", steps=None) -> DeployContext:
    ws = load_workspace(config_file)
    deployer = deployer if deployer is not None else MockStackDeployer()
    return DeployContext(
        workspace=ws,
        root=config_file.parent,
        deployer=deployer,
        lister=deployer,
        prompter=prompter if prompter is not None else MockPrompter(answer=True),
        renderer=YamlTemplateRenderer(tags=ws.tags),
        environments=WorkspaceEnvironmentStore(ws),
        connections=WorkspaceConnectionLookup(ws),
        artifact_steps=lambda name: list(steps or []),
        version=version,
    )


# ── Workloads ────────────────────────────────────────────────────────


class TestDeployWorkload:
    def test_first_deploy_creates(self, config_file, deployer, prompter):
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test")
        assert result.ok
        assert result.outcome == ApplyOutcome.CREATED
        assert result.stack_name == "shop-test-api"
        assert deployer.calls("create") == ["shop-test-api"]
        assert prompter.call_count == 0

    def test_redeploy_asks_then_updates(self, config_file, prompter):
        deployer = MockStackDeployer(templates={"shop-test-api": "Resources: {}\n"})
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test")
        assert result.outcome == ApplyOutcome.UPDATED
        assert deployer.calls("update") == ["shop-test-api"]
        assert prompter.messages == ["Are you sure you want to redeploy an existing workload: api?"]

    def test_yes_skips_prompt(self, config_file, prompter):
        deployer = MockStackDeployer(templates={"shop-test-api": "Resources: {}\n"})
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test", DeployOptions(yes=True))
        assert result.outcome == ApplyOutcome.UPDATED
        assert prompter.call_count == 0

    def test_declined_redeploy(self, config_file):
        deployer = MockStackDeployer(templates={"shop-test-api": "Resources: {}\n"})
        result = deploy_workload(_ctx(config_file, deployer, MockPrompter(answer=False)), "api", "test")
        assert result.outcome == ApplyOutcome.DECLINED
        assert result.exit_code == 0
        assert deployer.calls("update") == []
        assert deployer.calls("create") == []

    def test_no_change(self, config_file, prompter):
        deployer = MockStackDeployer(templates={"shop-test-api": "Resources: {}\n"})
        deployer.set_failure("update", ChangeSetEmptyError("shop-test-api"))
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test", DeployOptions(yes=True))
        assert result.outcome == ApplyOutcome.NO_CHANGE
        assert result.exit_code == 0

    def test_downgrade_blocked_before_any_apply(self, config_file, prompter):
        deployer = MockStackDeployer(
            templates={"shop-test-api": "Resources: {}\n"},
            versions={"shop-test-api": "v1.31.0"},
        )
        steps = [MockArtifactStep("api")]
        result = deploy_workload(_ctx(config_file, deployer, prompter, steps=steps), "api", "test")
        assert isinstance(result.error, DowngradeError)
        assert result.exit_code == 1
        assert deployer.calls("update") == []
        assert steps[0].call_count == 0

    def test_allow_downgrade(self, config_file, prompter):
        deployer = MockStackDeployer(
            templates={"shop-test-api": "Resources: {}\n"},
            versions={"shop-test-api": "v1.31.0"},
        )
        opts = DeployOptions(yes=True, allow_downgrade=True)
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test", opts)
        assert result.outcome == ApplyOutcome.UPDATED
        assert deployer.calls("version") == []

    def test_environment_overrides(self, config_file, deployer, prompter):
        deploy_workload(_ctx(config_file, deployer, prompter), "api", "prod")
        template = deployer.templates["shop-prod-api"]
        assert "cpu: 1024" in template
        assert "region: eu-west-1" in template

    def test_artifacts_are_referenced(self, config_file, deployer, prompter):
        steps = [MockArtifactStep("api", "sha256:feed")]
        result = deploy_workload(_ctx(config_file, deployer, prompter, steps=steps), "api", "test")
        assert result.artifacts.image_digests == {"api": "sha256:feed"}
        assert "sha256:feed" in deployer.templates["shop-test-api"]

    def test_artifact_failure_stops_deploy(self, config_file, deployer, prompter):
        steps = [MockArtifactStep(error=RuntimeError("disk full"))]
        result = deploy_workload(_ctx(config_file, deployer, prompter, steps=steps), "api", "test")
        assert str(result.error) == "upload artifacts for workload api: disk full"
        assert deployer.calls("create") == []

    def test_unknown_workload(self, config_file, deployer, prompter):
        result = deploy_workload(_ctx(config_file, deployer, prompter), "ghost", "test")
        assert isinstance(result.error, NotFoundError)
        assert str(result.error) == "workload ghost not found in the workspace"

    def test_unknown_environment(self, config_file, deployer, prompter):
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "staging")
        assert isinstance(result.error, NotFoundError)
        assert str(result.error) == (
            "get environment staging configuration: environment staging not found in application shop"
        )

    def test_wrong_application(self, config_file, deployer, prompter):
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test", app="bank")
        assert isinstance(result.error, NotFoundError)
        assert deployer.call_log == []


# ── Diff preview ─────────────────────────────────────────────────────


class TestDiffPreview:
    def test_diff_is_shown_then_confirmed(self, config_file, deployer, prompter):
        shown = []
        opts = DeployOptions(show_diff=True)
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test", opts, on_diff=shown.append)
        assert len(shown) == 1
        assert shown[0].has_changes
        assert shown[0].render().startswith("+ ")
        assert prompter.messages == [CONTINUE_PROMPT]
        assert result.outcome == ApplyOutcome.CREATED

    def test_declining_the_diff_aborts(self, config_file, deployer):
        result = deploy_workload(
            _ctx(config_file, deployer, MockPrompter(answer=False)), "api", "test", DeployOptions(show_diff=True),
        )
        assert result.aborted
        assert result.outcome == ApplyOutcome.DECLINED
        assert result.exit_code == 0
        assert result.apply is None
        assert deployer.calls("create") == []

    def test_accepted_diff_replaces_redeploy_prompt(self, config_file, prompter):
        deployer = MockStackDeployer(templates={"shop-test-api": "Resources: {}\n"})
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test", DeployOptions(show_diff=True))
        assert result.outcome == ApplyOutcome.UPDATED
        assert prompter.messages == [CONTINUE_PROMPT]

    def test_autoapprove(self, config_file, deployer, prompter):
        opts = DeployOptions(show_diff=True, diff_autoapprove=True)
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test", opts)
        assert result.outcome == ApplyOutcome.CREATED
        assert prompter.call_count == 0
        assert result.diff is not None

    def test_diff_fetch_failure(self, config_file, deployer, prompter):
        deployer.set_failure("template", RuntimeError("access denied"))
        result = deploy_workload(_ctx(config_file, deployer, prompter), "api", "test", DeployOptions(show_diff=True))
        assert str(result.error) == "retrieve the deployed template for workload api: access denied"
        assert deployer.calls("create") == []


# ── Environments ─────────────────────────────────────────────────────


class TestDeployEnvironment:
    def test_creates_environment_stack(self, config_file, deployer, prompter):
        result = deploy_environment(_ctx(config_file, deployer, prompter), "prod")
        assert result.outcome == ApplyOutcome.CREATED
        assert result.stack_name == "shop-prod"
        template = deployer.templates["shop-prod"]
        assert "size: large" in template
        assert "Shipwright::Environment" in template

    def test_unknown_environment(self, config_file, deployer, prompter):
        result = deploy_environment(_ctx(config_file, deployer, prompter), "qa")
        assert isinstance(result.error, NotFoundError)


# ── Pipelines ────────────────────────────────────────────────────────


PIPELINE_WITH_CONNECTION = textwrap.dedent("""\
    application: shop
    environments:
      - name: test
        region: us-west-2
        account_id: "111111111111"
    connections:
      acme-github: arn:aws:codestar-connections:us-west-2:111111111111:connection/abc
    pipelines:
      - name: release
        source:
          provider: GitHub
          properties:
            repository: https://github.com/acme/shop
            connection_name: {connection}
        stages:
          - name: test
""")


class TestDeployPipeline:
    def test_fresh_pipeline(self, config_file, deployer, prompter):
        result = deploy_pipeline(_ctx(config_file, deployer, prompter), "release")
        assert result.outcome == ApplyOutcome.CREATED
        assert result.stack_name == "pipeline-shop-release"
        assert deployer.calls("create") == ["pipeline-shop-release"]
        assert [s.environment_name for s in result.stages] == ["test", "prod"]
        assert all(s.local_workloads == ("api", "report") for s in result.stages)

    def test_connection_needs_activation(self, config_file, deployer, prompter):
        result = deploy_pipeline(_ctx(config_file, deployer, prompter), "release")
        [notice] = [n for n in result.apply.notices if n.kind == NoticeKind.ACTION_REQUIRED]
        assert "shipwright-acme-shop" in notice.message
        assert "PENDING to AVAILABLE" in notice.message

    def test_only_pipeline_is_picked(self, config_file, deployer, prompter):
        result = deploy_pipeline(_ctx(config_file, deployer, prompter))
        assert result.target.name == "release"

    def test_unknown_pipeline(self, config_file, deployer, prompter):
        result = deploy_pipeline(_ctx(config_file, deployer, prompter), "ghost")
        assert isinstance(result.error, NotFoundError)

    def test_legacy_pipeline_keeps_its_name(self, config_file, prompter):
        deployer = MockStackDeployer(
            templates={"release": "Resources: {}\n"},
            versions={"release": "v1.0.0"},
            pipelines=[DeployedPipeline(app="shop", resource_name="release", name="release", is_legacy=True)],
        )
        opts = DeployOptions(yes=True)
        result = deploy_pipeline(_ctx(config_file, deployer, prompter), "release", opts)
        assert result.outcome == ApplyOutcome.UPDATED
        assert result.stack_name == "release"
        assert deployer.calls("version") == ["release"]
        assert deployer.calls("exists") == ["release"]
        assert deployer.calls("update") == ["release"]
        assert deployer.calls("list") == ["shop"]

    def test_pipeline_downgrade(self, config_file, prompter):
        deployer = MockStackDeployer(
            templates={"pipeline-shop-release": "Resources: {}\n"},
            versions={"pipeline-shop-release": "v1.30.0"},
        )
        result = deploy_pipeline(_ctx(config_file, deployer, prompter, version="v1.28.0"), "release")
        assert str(result.error) == (
            'cannot downgrade pipeline "release" (currently in version v1.30.0) to version v1.28.0'
        )
        assert deployer.calls("update") == []
        assert deployer.calls("create") == []

    def test_list_failure(self, config_file, deployer, prompter):
        deployer.set_failure("list", RuntimeError("throttled"))
        result = deploy_pipeline(_ctx(config_file, deployer, prompter), "release")
        assert str(result.error) == "list deployed pipelines for app shop: throttled"
        assert deployer.calls("create") == []

    def test_named_connection_is_resolved(self, tmp_path, deployer, prompter):
        path = tmp_path / "shipwright.yml"
        path.write_text(PIPELINE_WITH_CONNECTION.format(connection="acme-github"))
        result = deploy_pipeline(_ctx(path, deployer, prompter), "release")
        assert result.outcome == ApplyOutcome.CREATED
        assert not [n for n in result.apply.notices if n.kind == NoticeKind.ACTION_REQUIRED]
        assert "connection/abc" in deployer.templates["pipeline-shop-release"]

    def test_missing_connection(self, tmp_path, deployer, prompter):
        path = tmp_path / "shipwright.yml"
        path.write_text(PIPELINE_WITH_CONNECTION.format(connection="nope"))
        result = deploy_pipeline(_ctx(path, deployer, prompter), "release")
        assert str(result.error) == "get connection ARN: connection nope not found"

    def test_stage_with_unknown_environment(self, tmp_path, deployer, prompter):
        path = tmp_path / "shipwright.yml"
        path.write_text(
            PIPELINE_WITH_CONNECTION.format(connection="acme-github").replace("stages:\n      - name: test", "stages:\n      - name: qa")
        )
        result = deploy_pipeline(_ctx(path, deployer, prompter), "release")
        assert isinstance(result.error, NotFoundError)
        assert str(result.error).startswith(
            "convert environments to deployment stage: get environment qa in application shop:"
        )

    def test_invalid_source(self, tmp_path, deployer, prompter):
        path = tmp_path / "shipwright.yml"
        path.write_text(PIPELINE_WITH_CONNECTION.format(connection="acme-github").replace("GitHub", "GitLab"))
        result = deploy_pipeline(_ctx(path, deployer, prompter), "release")
        assert isinstance(result.error, ValidationError)
        assert str(result.error) == "read source from manifest: invalid repo source provider: GitLab"


# ── Local context and stack commands ─────────────────────────────────


class TestLocalDeploys:
    def test_deploy_twice_then_no_change(self, config_file, monkeypatch):
        monkeypatch.delenv("SHIPWRIGHT_TEMPLATE_VERSION", raising=False)
        first = deploy_workload(DeployContext.local(config_file, interactive=False), "api", "test")
        assert first.outcome == ApplyOutcome.CREATED
        assert set(first.artifacts.references()) == {"image/api", "env_file/api"}

        second = deploy_workload(
            DeployContext.local(config_file, interactive=False), "api", "test", DeployOptions(yes=True),
        )
        assert second.outcome == ApplyOutcome.NO_CHANGE
        assert second.exit_code == 0

    def test_non_interactive_redeploy_needs_yes(self, config_file):
        deploy_workload(DeployContext.local(config_file, interactive=False), "report", "test")
        result = deploy_workload(DeployContext.local(config_file, interactive=False), "report", "test")
        assert result.outcome == ApplyOutcome.FAILED
        assert "pass --yes" in str(result.error)

    def test_outside_workspace(self, tmp_path):
        with pytest.raises(ConfigError):
            DeployContext.local(tmp_path / "shipwright.yml")

    def test_workspace_found_from_cwd(self, workspace_dir, monkeypatch):
        monkeypatch.chdir(workspace_dir / "api")
        ctx = DeployContext.local(interactive=False)
        assert ctx.root == workspace_dir.resolve()
        assert stack_status().error is None

    def test_status_and_rollback(self, config_file):
        ctx = DeployContext.local(config_file, interactive=False)
        deploy_workload(ctx, "api", "test")
        (config_file.parent / "api" / "main.py").write_text("print('v2')\n")
        deploy_workload(DeployContext.local(config_file, interactive=False), "api", "test", DeployOptions(yes=True))

        status = stack_status(config_file, "shop-test-api")
        assert status.error is None
        assert status.to_dict()["stacks"][0]["deployments"] == 2
        assert status.to_dict()["stacks"][0]["can_roll_back"] is True

        rollback = stack_rollback("shop-test-api", config_file)
        assert rollback.error is None
        assert rollback.deleted is False
        assert rollback.record.status == "UPDATE_ROLLBACK_COMPLETE"

        again = stack_rollback("shop-test-api", config_file)
        assert "no previous configuration" in str(again.error)

    def test_status_of_missing_stack(self, config_file):
        result = stack_status(config_file, "shop-test-ghost")
        assert result.error is not None
        assert "error" in result.to_dict()

    def test_status_lists_everything(self, config_file):
        ctx = DeployContext.local(config_file, interactive=False)
        deploy_workload(ctx, "api", "test")
        deploy_environment(ctx, "test")
        names = [s["stack"] for s in stack_status(config_file).to_dict()["stacks"]]
        assert sorted(names) == ["shop-test", "shop-test-api"]
