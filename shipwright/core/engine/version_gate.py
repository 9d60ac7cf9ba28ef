"""
Version gate — refuse to downgrade a stack written by a newer CLI.

Every deployed stack records the template version that wrote it. If
that version is newer than the one this CLI renders, applying would
silently drop features; the gate stops the run unless the user passes
``--allow-downgrade``.
"""

from __future__ import annotations

import logging

import semver

from shipwright.adapters.base import VersionGetter
from shipwright.core.errors import DowngradeError, StackNotFoundError, wrap
from shipwright.core.models.target import DeploymentTarget, VersionConstraint

logger = logging.getLogger(__name__)


def _parse(version: str) -> semver.Version | None:
    # "v1" and "v1.2" are shorthand for v1.0.0 and v1.2.0.
    try:
        return semver.Version.parse(version.removeprefix("v"), optional_minor_and_patch=True)
    except (TypeError, ValueError):
        return None


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 comparing ``a`` to ``b`` in SemVer order.

    Pre-releases sort before their release and build metadata is
    ignored. An unparsable version sorts below every valid one; two
    unparsable versions compare equal.
    """
    va, vb = _parse(a), _parse(b)
    if va is None and vb is None:
        return 0
    if va is None:
        return -1
    if vb is None:
        return 1
    return va.compare(vb)


def check_version(
    deployed_version: str | None,
    candidate_version: str,
    allow_downgrade: bool,
    *,
    component_name: str,
    component_type: str,
) -> None:
    """Raise DowngradeError if applying would downgrade the component.

    A missing deployed version means a fresh stack, which always passes.
    """
    if deployed_version is None or allow_downgrade:
        return
    if compare_versions(deployed_version, candidate_version) > 0:
        raise DowngradeError(
            component_name=component_name,
            component_type=component_type,
            deployed_version=deployed_version,
            candidate_version=candidate_version,
        )


class VersionGate:
    """Looks up a stack's deployed version and checks it."""

    def __init__(self, getter: VersionGetter, candidate_version: str):
        self._getter = getter
        self._candidate = candidate_version

    def constraint(self, target: DeploymentTarget, stack_name: str, allow_downgrade: bool) -> VersionConstraint:
        try:
            deployed = self._getter.version(stack_name)
        except StackNotFoundError:
            deployed = None
        except Exception as e:
            raise wrap(e, f"get template version of {target.describe()}") from e
        return VersionConstraint(
            candidate_version=self._candidate,
            deployed_version=deployed,
            allow_downgrade=allow_downgrade,
        )

    def check(self, target: DeploymentTarget, stack_name: str, allow_downgrade: bool = False) -> VersionConstraint:
        constraint = self.constraint(target, stack_name, allow_downgrade)
        logger.debug(
            "Version gate for %s: deployed=%s candidate=%s",
            target.describe(), constraint.deployed_version, constraint.candidate_version,
        )
        check_version(
            constraint.deployed_version,
            constraint.candidate_version,
            constraint.allow_downgrade,
            component_name=target.name,
            component_type=target.kind,
        )
        return constraint
