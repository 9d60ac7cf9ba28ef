"""
Error taxonomy — every failure the deploy engine knows how to name.

Two families live here:

    - Failures that reach the user (ValidationError, NotFoundError,
      DowngradeError, TransportError, DeployError, TemplateParseError).
      They carry context added at each call site and, where there is
      one, a recommended action that the CLI prints under the message.

    - Signals raised by the control plane (StackAlreadyExistsError,
      ChangeSetEmptyError, the two interrupt signals). The lifecycle
      controller turns them into explicit outcomes; they never escape
      it as errors.
"""

from __future__ import annotations


class ShipwrightError(Exception):
    """Base class for all shipwright errors."""

    def __init__(self, *args: object, advice: str = ""):
        super().__init__(*args)
        self.advice = advice

    def recommended_actions(self) -> str:
        """Follow-up the user can take, or an empty string."""
        return self.advice


class ValidationError(ShipwrightError):
    """Bad target identity, flag combination or manifest value."""


class NotFoundError(ShipwrightError):
    """A referenced application, environment, workload or pipeline is missing."""


class StackNotFoundError(NotFoundError):
    """The control plane has no stack with the given name."""

    def __init__(self, stack_name: str):
        super().__init__(f"stack {stack_name} not found")
        self.stack_name = stack_name


class TemplateParseError(ShipwrightError):
    """A template could not be parsed for diffing."""


class TransportError(ShipwrightError):
    """A collaborator call failed for a reason we do not recover from."""


class DeployError(ShipwrightError):
    """Creating or updating a stack failed."""


class DowngradeError(ShipwrightError):
    """The deployed stack was last written by a newer template version."""

    def __init__(
        self,
        component_name: str,
        component_type: str,
        deployed_version: str,
        candidate_version: str,
    ):
        self.component_name = component_name
        self.component_type = component_type
        self.deployed_version = deployed_version
        self.candidate_version = candidate_version
        super().__init__(
            f'cannot downgrade {component_type} "{component_name}" '
            f"(currently in version {deployed_version}) to version {candidate_version}"
        )

    def recommended_actions(self) -> str:
        return (
            f"It looks like you are trying to use an earlier version of shipwright to downgrade "
            f"{self.component_type} {self.component_name} lastly updated by a newer version of shipwright.\n"
            "- We recommend upgrading your local shipwright CLI and running this command again.\n"
            "- Alternatively, you can run with --allow-downgrade to override. "
            "However, this can cause unsuccessful deployment. Please use with caution!"
        )


# ── Control-plane signals ────────────────────────────────────────


class StackAlreadyExistsError(ShipwrightError):
    """Another actor created the stack between our probe and our create."""

    def __init__(self, stack_name: str):
        super().__init__(f"stack {stack_name} already exists")
        self.stack_name = stack_name


class ChangeSetEmptyError(ShipwrightError):
    """The submitted template introduces no resource changes."""

    def __init__(self, stack_name: str):
        super().__init__(f"change set for stack {stack_name} is empty: no changes to deploy")
        self.stack_name = stack_name


class StackDeletedOnInterruptError(ShipwrightError):
    """A create was interrupted and the platform deleted the partial stack."""

    def __init__(self, stack_name: str):
        super().__init__(f"stack {stack_name} was deleted after the create was interrupted")
        self.stack_name = stack_name


class StackRolledBackOnInterruptError(ShipwrightError):
    """An update was interrupted and the platform rolled the stack back."""

    def __init__(self, stack_name: str):
        super().__init__(f"stack {stack_name} was rolled back after the update was interrupted")
        self.stack_name = stack_name


def wrap(exc: Exception, context: str, cls: type[ShipwrightError] = TransportError) -> ShipwrightError:
    """Build ``cls("<context>: <exc>")`` and carry over any recommendation.

    Callers chain it with ``raise wrap(e, "...") from e`` so the cause
    stays on ``__cause__``.
    """
    advice = exc.recommended_actions() if isinstance(exc, ShipwrightError) else ""
    return cls(f"{context}: {exc}", advice=advice)
