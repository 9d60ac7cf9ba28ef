"""
Shared test fixtures and configuration.
"""

import logging
import textwrap
from pathlib import Path

import pytest

from shipwright.adapters.mock import MockPrompter, MockStackDeployer
from shipwright.core.models.target import DeploymentTarget, ProposedChange

WORKSPACE_YML = textwrap.dedent("""\
    application: shop
    tags:
      team: payments
    environments:
      - name: test
        region: us-west-2
        account_id: "111111111111"
      - name: prod
        region: eu-west-1
        account_id: "222222222222"
        config:
          size: large
    workloads:
      - name: api
        type: service
        image:
          build: api/Dockerfile
        env_file: api/app.env
        config:
          cpu: 256
          environments:
            prod:
              cpu: 1024
      - name: report
        type: job
        image:
          location: public.ecr.aws/shop/report:1.2
        config:
          schedule: "@daily"
    pipelines:
      - name: release
        source:
          provider: GitHub
          properties:
            repository: https://github.com/acme/shop
            branch: main
        stages:
          - name: test
            test_commands:
              - make integ
          - name: prod
            requires_approval: true
""")


@pytest.fixture
def workspace_dir(tmp_path: Path) -> Path:
    """A workspace with shipwright.yml and the files its workloads reference."""
    (tmp_path / "shipwright.yml").write_text(WORKSPACE_YML)
    (tmp_path / "api").mkdir()
    (tmp_path / "api" / "Dockerfile").write_text("FROM python:3.12-slim\nCOPY . /app\n")
    (tmp_path / "api" / "main.py").write_text("print('hello')\n")
    (tmp_path / "api" / "app.env").write_text("LOG_LEVEL=info\n")
    return tmp_path


@pytest.fixture
def config_file(workspace_dir: Path) -> Path:
    return workspace_dir / "shipwright.yml"


@pytest.fixture
def deployer() -> MockStackDeployer:
    return MockStackDeployer()


@pytest.fixture
def prompter() -> MockPrompter:
    return MockPrompter(answer=True)


@pytest.fixture
def workload_target() -> DeploymentTarget:
    return DeploymentTarget(app="shop", name="api", kind="workload", env="test")


@pytest.fixture
def pipeline_target() -> DeploymentTarget:
    return DeploymentTarget(app="shop", name="pipepiper", kind="pipeline")


@pytest.fixture
def change() -> ProposedChange:
    return ProposedChange(
        template="Resources:\n  Service:\n    Type: Shipwright::Workload::Service\n",
        parameters='{"Parameters": {}}',
    )


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
