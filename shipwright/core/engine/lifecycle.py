"""
Stack lifecycle controller — create or update one stack, classify the result.

The controller is the last step of a deploy run. It receives a fully
rendered ProposedChange and:

    1. Probes whether the stack exists.
    2. Creates it, or asks before updating it (unless pre-approved).
    3. Maps what the control plane reports into one ApplyOutcome.

It never raises and never prints. Benign conditions (declined prompt,
empty change set, interrupted apply) become outcomes; anything else
becomes FAILED with a wrapped error on the result. What the user should
see along the way is attached as Notices.

There is no client-side lock: two runs against the same stack rely on
the control plane rejecting the second one.
"""

from __future__ import annotations

import logging

from shipwright.adapters.base import Prompter, StackDeployer
from shipwright.core.errors import (
    ChangeSetEmptyError,
    DeployError,
    StackAlreadyExistsError,
    StackDeletedOnInterruptError,
    StackRolledBackOnInterruptError,
    wrap,
)
from shipwright.core.models.outcome import ApplyOutcome, ApplyResult, NoticeKind, StackOptions
from shipwright.core.models.target import DeploymentTarget, ProposedChange

logger = logging.getLogger(__name__)

REDEPLOY_PROMPT = "Are you sure you want to redeploy an existing {kind}: {name}?"
ROLLBACK_COMMAND = "shipwright stack rollback --stack-name {stack}"
STATUS_COMMAND = "shipwright stack status --stack-name {stack}"


class StackLifecycleController:
    """Applies a ProposedChange to one stack through the control plane."""

    def __init__(self, deployer: StackDeployer, prompter: Prompter):
        self._deployer = deployer
        self._prompter = prompter

    def apply(
        self,
        target: DeploymentTarget,
        stack_name: str,
        change: ProposedChange,
        options: StackOptions | None = None,
        *,
        pre_approved: bool = False,
        connection_notice: str | None = None,
    ) -> ApplyResult:
        """Create or update ``stack_name`` with ``change``.

        Args:
            target: What is being deployed; used in messages.
            stack_name: Resolved stack name (legacy naming already applied).
            change: Rendered template and parameters.
            options: Rollback, detach and force switches.
            pre_approved: Skip the redeploy confirmation (``--yes`` or an
                accepted diff).
            connection_notice: Action-required message shown before a
                create whose source connection needs manual activation.

        Returns:
            ApplyResult; inspect ``outcome``, never catch.
        """
        options = options or StackOptions()
        result = ApplyResult(outcome=ApplyOutcome.FAILED, target=target, stack_name=stack_name)

        try:
            exists = self._deployer.exists(stack_name)
        except Exception as e:
            result.error = wrap(e, f"check if {target.describe()} exists")
            return result

        if not exists:
            return self._create(result, change, options, connection_notice)
        return self._update(result, change, options, pre_approved)

    # ── Create ──────────────────────────────────────────────────

    def _create(
        self,
        result: ApplyResult,
        change: ProposedChange,
        options: StackOptions,
        connection_notice: str | None,
    ) -> ApplyResult:
        target, stack_name = result.target, result.stack_name
        if connection_notice:
            result.notice(NoticeKind.ACTION_REQUIRED, connection_notice)

        logger.info("Creating stack %s for %s", stack_name, target.describe())
        try:
            self._deployer.create(stack_name, change, options)
        except StackAlreadyExistsError:
            # Another run created it between our probe and our create.
            logger.info("Stack %s was created concurrently", stack_name)
        except StackDeletedOnInterruptError:
            result.outcome = ApplyOutcome.INTERRUPTED_CREATE
            result.notice(
                NoticeKind.DELETED_ON_INTERRUPT,
                f"Deployment of {target.describe()} was interrupted; stack {stack_name} was deleted.",
            )
            return result
        except ChangeSetEmptyError:
            return self._no_change(result, options)
        except Exception as e:
            return self._failed(result, e, "create", options)

        return self._succeeded(result, ApplyOutcome.CREATED, options)

    # ── Update ──────────────────────────────────────────────────

    def _update(
        self,
        result: ApplyResult,
        change: ProposedChange,
        options: StackOptions,
        pre_approved: bool,
    ) -> ApplyResult:
        target, stack_name = result.target, result.stack_name
        if not pre_approved:
            prompt = REDEPLOY_PROMPT.format(kind=target.kind, name=target.name)
            try:
                confirmed = self._prompter.confirm(prompt, default=False)
            except Exception as e:
                result.error = wrap(e, f"prompt for {target.kind} deploy")
                return result
            if not confirmed:
                logger.info("Redeploy of %s declined", target.describe())
                result.outcome = ApplyOutcome.DECLINED
                return result

        logger.info("Updating stack %s for %s", stack_name, target.describe())
        try:
            self._deployer.update(stack_name, change, options)
        except StackRolledBackOnInterruptError:
            result.outcome = ApplyOutcome.INTERRUPTED_UPDATE
            result.notice(
                NoticeKind.ROLLED_BACK,
                f"Deployment of {target.describe()} was interrupted; "
                f"stack {stack_name} was rolled back to its previous configuration.",
            )
            return result
        except ChangeSetEmptyError:
            return self._no_change(result, options)
        except Exception as e:
            return self._failed(result, e, "update", options)

        return self._succeeded(result, ApplyOutcome.UPDATED, options)

    # ── Outcomes ────────────────────────────────────────────────

    def _succeeded(self, result: ApplyResult, outcome: ApplyOutcome, options: StackOptions) -> ApplyResult:
        result.outcome = outcome
        if options.detach:
            result.detached = True
            return result
        result.recommendations = _recommendations(result.target, result.stack_name)
        return result

    def _no_change(self, result: ApplyResult, options: StackOptions) -> ApplyResult:
        target, stack_name = result.target, result.stack_name
        if options.force_new_update:
            try:
                forced = self._deployer.force_update(stack_name)
            except Exception as e:
                result.error = wrap(e, f"force an update for {target.describe()}", DeployError)
                return result
            if forced:
                logger.info("Forced an update of %s", stack_name)
                return self._succeeded(result, ApplyOutcome.UPDATED, options)

        result.outcome = ApplyOutcome.NO_CHANGE
        result.notice(NoticeKind.NO_CHANGES, f"No infrastructure changes for {target.describe()}.")
        if target.kind == "workload" and not options.force_new_update:
            result.notice(NoticeKind.FORCE_UPDATE_HINT, "Set --force to force an update for the workload.")
        return result

    def _failed(self, result: ApplyResult, exc: Exception, verb: str, options: StackOptions) -> ApplyResult:
        target, stack_name = result.target, result.stack_name
        logger.debug("%s of stack %s failed: %s", verb, stack_name, exc)
        result.outcome = ApplyOutcome.FAILED
        result.error = wrap(exc, f"{verb} {target.describe()}", DeployError)
        if options.disable_rollback:
            command = ROLLBACK_COMMAND.format(stack=stack_name)
            result.notice(
                NoticeKind.ROLLBACK_DISABLED,
                f"Rollback is disabled, so stack {stack_name} was left in its failed state. "
                f"Fix the failure and redeploy, or run `{command}` to roll it back.",
            )
            result.recommendations = [f"Run `{command}` to roll back to the last good configuration."]
        return result


def _recommendations(target: DeploymentTarget, stack_name: str) -> list[str]:
    actions = [f"Run `{STATUS_COMMAND.format(stack=stack_name)}` to check the deployed {target.kind}."]
    if target.kind == "pipeline":
        actions.append("Commit and push your changes to the source branch to start the pipeline.")
    return actions
