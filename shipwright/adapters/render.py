"""
Template renderer — resolved configuration → stack template.

Produces a YAML template with the sections every control plane adapter
relies on:

    Metadata.Version   template version that wrote the stack
    Metadata.Manifest  the configuration it was rendered from
    Metadata.Tags      identity of the component (application, kind, name)
    Parameters         declared inputs; values go in ``ProposedChange.parameters``
    Resources          one resource per component, properties from config

The resource types are this tool's own, not a cloud provider's.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import yaml

from shipwright.adapters.base import TemplateRenderer
from shipwright.core.engine.artifacts import UploadArtifactsOutput
from shipwright.core.models.target import DeploymentTarget, ProposedChange

logger = logging.getLogger(__name__)

TEMPLATE_FORMAT_VERSION = "2010-09-09"

_RESOURCE_TYPES = {
    "service": "Shipwright::Workload::Service",
    "job": "Shipwright::Workload::Job",
    "environment": "Shipwright::Environment",
    "application": "Shipwright::Application",
    "pipeline": "Shipwright::Pipeline",
}


def _dump(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


class YamlTemplateRenderer(TemplateRenderer):
    """Renders every component kind into the same template layout."""

    def __init__(self, tags: dict[str, str] | None = None):
        self._tags = dict(tags or {})

    def render(
        self,
        target: DeploymentTarget,
        config: dict,
        artifacts: UploadArtifactsOutput,
        version: str,
    ) -> ProposedChange:
        resource_kind = config.get("type", target.kind) if target.kind == "workload" else target.kind
        resource_name = _logical_id(target.kind if target.kind != "workload" else resource_kind)

        properties: dict[str, Any] = {"Name": target.name}
        properties.update({k: v for k, v in config.items() if k != "type"})
        refs = artifacts.references()
        if refs:
            properties["Artifacts"] = refs

        parameters = {"AppName": target.app}
        if target.env:
            parameters["EnvName"] = target.env
        parameters[f"{_logical_id(target.kind)}Name"] = target.name

        document = {
            "AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION,
            "Description": f"shipwright {target.describe()} in application {target.app}",
            "Metadata": {
                "Version": version,
                "Manifest": _dump(config),
                "Tags": self._component_tags(target),
            },
            "Parameters": {name: {"Type": "String"} for name in parameters},
            "Resources": {
                resource_name: {
                    "Type": _RESOURCE_TYPES.get(resource_kind, f"Shipwright::{_logical_id(resource_kind)}"),
                    "Properties": properties,
                },
            },
        }
        logger.debug("Rendered template for %s at %s", target.describe(), version)
        return ProposedChange(
            template=_dump(document),
            parameters=json.dumps({"Parameters": parameters}, indent=2, sort_keys=True),
            artifact_references=refs,
        )

    def _component_tags(self, target: DeploymentTarget) -> dict[str, str]:
        tags = dict(self._tags)
        tags["shipwright-application"] = target.app
        tags["shipwright-kind"] = target.kind
        tags["shipwright-name"] = target.name
        if target.env:
            tags["shipwright-environment"] = target.env
        return tags


def _logical_id(kind: str) -> str:
    return kind[:1].upper() + kind[1:]
