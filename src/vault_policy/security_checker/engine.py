"""
Rule engine.

A RuleBook holds named rules and enforces a selection of them against a
context object. Each rule runs in two steps:

    enable(context) -> ENABLED | Disabled(reason)
    define(context) -> True | False, or raises PolicyViolation

Rules run one at a time in registration order. A disabled rule is skipped,
a rule whose enable step raises is skipped and reported as a configuration
error, and the first failing rule stops the pass with a RuleViolation.
Exceptions raised by define or punishment propagate unchanged.
"""
import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, List

from vault_policy.config.config_policy import ALL_RULES
from vault_policy.config.logging_config import timestamped
from vault_policy.errors import PolicyViolation, RuleConfigurationError, RuleViolation

logger = logging.getLogger(__name__)


class _Enabled:
    __slots__ = ()

    def __repr__(self):
        return "ENABLED"


ENABLED = _Enabled()


@dataclass(frozen=True)
class Disabled:
    """Enable step result for a rule that should not run."""
    reason: str


class RuleStatus(Enum):
    PASSED = "passed"
    DISABLED = "disabled"
    CONFIG_ERROR = "config_error"


@dataclass(frozen=True)
class RuleOutcome:
    rule: str
    status: RuleStatus
    reason: str = ''


@dataclass
class EnforcementReport:
    """
    Outcome of every selected rule of a successful enforcement pass.

    A failed pass raises instead of returning a report.
    """
    selector: str
    outcomes: List[RuleOutcome] = field(default_factory=list)

    def _with_status(self, status: RuleStatus) -> List[RuleOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is status]

    @property
    def passed(self) -> List[RuleOutcome]:
        return self._with_status(RuleStatus.PASSED)

    @property
    def disabled(self) -> List[RuleOutcome]:
        return self._with_status(RuleStatus.DISABLED)

    @property
    def config_errors(self) -> List[RuleOutcome]:
        return self._with_status(RuleStatus.CONFIG_ERROR)

    def status_of(self, rule_name: str) -> RuleStatus | None:
        for outcome in self.outcomes:
            if outcome.rule == rule_name:
                return outcome.status
        return None


@dataclass(frozen=True)
class Rule:
    """
    A named, self-describing policy check. Holds no per-call state.

    Attributes:
        name: Hierarchical name, segments separated by '/'.
        description: Explains the rule to the end user.
        enable: Returns ENABLED or Disabled(reason). Raises
            RuleConfigurationError when its own threshold is invalid.
        define: Returns True on pass, False on failure, or raises
            PolicyViolation with a message.
        punishment: Optional hook called as punishment(context, message),
            returning the message to report instead.
    """
    name: str
    description: str
    enable: Callable[[Any], "Disabled | _Enabled"]
    define: Callable[[Any], bool]
    punishment: Callable[[Any, str], str] | None = None


@lru_cache(maxsize=64)
def compile_selector(selector: str) -> re.Pattern:
    """
    Turn a rule selector into a regex.

    '**' matches across segments, '*' within one segment and '?' one
    character of a segment.
    """
    parts = []
    i = 0
    while i < len(selector):
        if selector.startswith("**", i):
            parts.append(".*")
            i += 2
        elif selector[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif selector[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(selector[i]))
            i += 1
    return re.compile("".join(parts))


class RuleBook:
    """
    Ordered collection of rules.

    Args:
        name: Label used in log messages.
    """

    def __init__(self, name: str = "rules"):
        self.name = name
        self._rules: List[Rule] = []

    def __repr__(self):
        return f"RuleBook(name={self.name!r}, rules={len(self._rules)})"

    def __len__(self):
        return len(self._rules)

    def add(self, rule: Rule) -> "RuleBook":
        """
        Register a rule after the ones already present.

        Raises:
            ValueError: If a rule with the same name exists.
        """
        if any(existing.name == rule.name for existing in self._rules):
            raise ValueError(f"Rule '{rule.name}' is already registered")
        self._rules.append(rule)
        return self

    register = add

    def rules(self, selector: str = ALL_RULES) -> List[Rule]:
        """Rules matching the selector, in registration order."""
        pattern = compile_selector(selector)
        return [rule for rule in self._rules if pattern.fullmatch(rule.name)]

    def enforce(self, selector: str, context) -> EnforcementReport:
        """
        Enforce every rule matching the selector against a context.

        Args:
            selector: Glob over rule names, '**/*' selects everything.
            context: Passed as is to every enable, define and punishment
                call.

        Returns:
            EnforcementReport with one outcome per selected rule.

        Raises:
            RuleViolation: For the first rule that fails. Later rules are
                not run.
        """
        report = EnforcementReport(selector=selector)

        for rule in self.rules(selector):
            try:
                state = rule.enable(context)
            except Exception as e:
                # Enable steps only read the config and the context
                reason = str(e) if isinstance(e, RuleConfigurationError) else f"Configuration error: {e}"
                logger.warning(timestamped(f"{self.name}: {rule.name} disabled, {reason}"))
                report.outcomes.append(RuleOutcome(rule.name, RuleStatus.CONFIG_ERROR, reason))
                continue

            if isinstance(state, Disabled):
                logger.info(timestamped(f"{self.name}: {rule.name} disabled, {state.reason}"))
                report.outcomes.append(RuleOutcome(rule.name, RuleStatus.DISABLED, state.reason))
                continue
            if state is not ENABLED:
                raise TypeError(f"Rule '{rule.name}' enable returned {state!r}")

            try:
                passed = rule.define(context)
                message = f"Rule '{rule.name}' failed"
            except PolicyViolation as e:
                passed = False
                message = str(e)

            if not passed:
                if rule.punishment is not None:
                    message = rule.punishment(context, message)
                logger.error(timestamped(f"{self.name}: {rule.name} failed, {message}"))
                raise RuleViolation(rule.name, message, rule.description)

            report.outcomes.append(RuleOutcome(rule.name, RuleStatus.PASSED))

        return report
