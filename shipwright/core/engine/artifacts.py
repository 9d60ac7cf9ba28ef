"""
Artifact coordinator — upload deployable assets before rendering.

A workload's template references things that must exist before the
stack is applied: container images, env files, addons templates,
custom-resource handlers, static assets. Each kind is uploaded by one
ArtifactStep; the coordinator runs them in order and collects their
references into one UploadArtifactsOutput.

Steps run sequentially and the first failure stops the run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from shipwright.adapters.base import ArtifactStep
from shipwright.core.errors import wrap
from shipwright.core.models.target import DeploymentTarget

logger = logging.getLogger(__name__)


@dataclass
class UploadArtifactsOutput:
    """References to uploaded artifacts, consumed by the template renderer."""

    image_digests: dict[str, str] = field(default_factory=dict)  # container name → digest
    env_file_arns: dict[str, str] = field(default_factory=dict)  # container name → object ARN
    addons_url: str = ""
    custom_resource_urls: dict[str, str] = field(default_factory=dict)
    static_asset_mapping_url: str = ""

    def references(self) -> dict[str, str]:
        """Flatten into the ``artifact_references`` map of a ProposedChange."""
        refs: dict[str, str] = {}
        for container, digest in self.image_digests.items():
            refs[f"image/{container}"] = digest
        for container, arn in self.env_file_arns.items():
            refs[f"env_file/{container}"] = arn
        if self.addons_url:
            refs["addons"] = self.addons_url
        for name, url in self.custom_resource_urls.items():
            refs[f"custom_resource/{name}"] = url
        if self.static_asset_mapping_url:
            refs["static_assets"] = self.static_asset_mapping_url
        return refs

    def to_dict(self) -> dict:
        return {
            "image_digests": dict(self.image_digests),
            "env_file_arns": dict(self.env_file_arns),
            "addons_url": self.addons_url,
            "custom_resource_urls": dict(self.custom_resource_urls),
            "static_asset_mapping_url": self.static_asset_mapping_url,
        }


class ArtifactCoordinator:
    def __init__(self, steps: Sequence[ArtifactStep] = ()):
        self._steps = list(steps)

    def upload(self, target: DeploymentTarget) -> UploadArtifactsOutput:
        """Run every upload step for ``target``.

        Raises:
            TransportError: A step failed; wrapped with the target identity.
        """
        out = UploadArtifactsOutput()
        for step in self._steps:
            logger.debug("Uploading %s artifacts for %s", type(step).__name__, target.describe())
            try:
                step.upload(out)
            except Exception as e:
                raise wrap(e, f"upload artifacts for {target.describe()}") from e
        if self._steps:
            logger.info("Uploaded artifacts for %s: %d reference(s)", target.describe(), len(out.references()))
        return out
