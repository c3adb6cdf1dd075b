"""
Exception types raised by the policy engine.

Configuration errors are contained by the rule engine and reported as
diagnostics. Policy violations abort an enforcement pass. Collaborator
failures (git, vault access) propagate unchanged.
"""
from vault_policy.config.config_policy import PATH_SEPARATOR, UNKNOWN_VAULT_NAME


class VaultPolicyError(Exception):
    """Base class for every error raised by this package."""


class SecurityConfigError(VaultPolicyError, ValueError):
    """A security config references an unknown preset or field."""


class RuleConfigurationError(VaultPolicyError):
    """A rule threshold is out of its valid range. Disables the rule."""


class PolicyViolation(VaultPolicyError):
    """Raised by a rule definition when the subject fails the policy."""


class RuleViolation(VaultPolicyError):
    """
    First failing rule of an enforcement pass.

    Attributes:
        rule: Hierarchical rule name, e.g. ``credential/password/length``.
        message: What failed.
        description: Extended explanation of the rule, may be empty.
    """

    def __init__(self, rule: str, message: str, description: str = ""):
        self.rule = rule
        self.message = message
        self.description = description
        super().__init__(message)

    def __str__(self):
        if self.description:
            return f"{self.message}\n{self.description}"
        return self.message


class CredentialRuleError(RuleViolation):
    """A credential does not satisfy the credential restrictions."""

    def __init__(self, credential, violation: RuleViolation):
        super().__init__(violation.rule, violation.message, violation.description)
        self.credential_id = credential.id
        self.credential_path = list(credential.path)

    @property
    def path_str(self) -> str:
        return PATH_SEPARATOR.join(self.credential_path)


class VaultRuleError(RuleViolation):
    """A vault does not satisfy the vault restrictions."""

    def __init__(self, vault, violation: RuleViolation):
        super().__init__(violation.rule, violation.message, violation.description)
        self.vault = vault.meta.name or UNKNOWN_VAULT_NAME


class CollaboratorError(VaultPolicyError):
    """An external lookup needed by a rule failed."""


class RepositoryLookupError(CollaboratorError):
    """Git could not answer for a reason other than 'not a repository'."""


class PromptError(VaultPolicyError):
    """A prompt handler could not obtain the vault credential."""
