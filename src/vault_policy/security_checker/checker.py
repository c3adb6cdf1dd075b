"""
Security checker.

Runs the vault and credential rule books and turns rule violations into
VaultRuleError and CredentialRuleError. Configuration errors never get
here, the engine reports them as disabled rules. Collaborator failures
propagate unchanged.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from vault_policy.config.config_policy import ALL_RULES
from vault_policy.config.logging_config import timestamped
from vault_policy.config.security import ResolvedSecurityConfig
from vault_policy.errors import CredentialRuleError, RuleViolation, VaultRuleError
from vault_policy.security_checker.credential_rules import CredentialRuleContext, build_credential_rulebook
from vault_policy.security_checker.engine import EnforcementReport, RuleBook
from vault_policy.security_checker.vault_rules import VaultRuleContext, build_vault_rulebook
from vault_policy.utils.credential import Credential
from vault_policy.utils.vault_utils import VaultCredential, VaultHandle

logger = logging.getLogger(__name__)


@dataclass
class SecurityChecker:
    """
    Both rule books, built once and shared.

    Rules hold no per-call state, so one checker can serve concurrent
    enforcement calls.
    """
    vault_rules: RuleBook = field(default_factory=build_vault_rulebook)
    credential_rules: RuleBook = field(default_factory=build_credential_rulebook)

    def check_vault(self, config: ResolvedSecurityConfig, vault: VaultHandle,
                    vault_credential: VaultCredential, selector: str = ALL_RULES,
                    cwd: str | None = None) -> EnforcementReport:
        """
        Enforce the vault rules.

        Raises:
            VaultRuleError: For the first rule the vault fails.
        """
        context = VaultRuleContext(config=config, vault=vault,
                                   vault_credential=vault_credential, cwd=cwd)
        try:
            return self.vault_rules.enforce(selector, context)
        except RuleViolation as e:
            raise VaultRuleError(vault, e) from e

    def check_credential(self, config: ResolvedSecurityConfig, credential: Credential,
                         vault: VaultHandle, selector: str = ALL_RULES) -> EnforcementReport:
        """
        Enforce the credential rules.

        Raises:
            CredentialRuleError: For the first rule the credential fails.
        """
        context = CredentialRuleContext(config=config, credential=credential, vault=vault)
        try:
            return self.credential_rules.enforce(selector, context)
        except RuleViolation as e:
            raise CredentialRuleError(credential, e) from e


@lru_cache(maxsize=None)
def get_security_checker() -> SecurityChecker:
    """The process wide checker. Built on first use, the same instance afterwards."""
    return SecurityChecker()


def check_vault_security(config: ResolvedSecurityConfig, vault: VaultHandle,
                         vault_credential: VaultCredential) -> EnforcementReport:
    """
    Check the vault against the vault restrictions of the config.

    Args:
        config: Resolved security config.
        vault: The opened vault.
        vault_credential: Password, keyfile and path used to open it.

    Returns:
        EnforcementReport listing passed and disabled rules.

    Raises:
        VaultRuleError: If the vault fails a rule.
        RepositoryLookupError: If a git lookup failed.
    """
    return get_security_checker().check_vault(config, vault, vault_credential)


def check_credential_security(config: ResolvedSecurityConfig, credential: Credential,
                              vault: VaultHandle) -> EnforcementReport:
    """
    Check a credential against the credential restrictions of the config.

    Args:
        config: Resolved security config.
        credential: Freshly read credential.
        vault: Vault holding it, read for the reuse check.

    Returns:
        EnforcementReport listing passed and disabled rules.

    Raises:
        CredentialRuleError: If the credential fails a rule.
    """
    return get_security_checker().check_credential(config, credential, vault)


def audit_vault_credentials(config: ResolvedSecurityConfig, vault: VaultHandle,
                            checker: SecurityChecker | None = None,
                            max_workers: int = 1) -> List[CredentialRuleError]:
    """
    Check every credential in the vault and collect the failures.

    Each credential is checked in its own enforcement pass, so one failing
    credential does not hide the others. Passes may run in parallel.

    Args:
        config: Resolved security config.
        vault: Vault to audit. Only read.
        checker: Defaults to the process wide checker.
        max_workers: Threads used. 1 checks credentials one after another.

    Returns:
        One CredentialRuleError per failing credential, sorted by path.
    """
    checker = get_security_checker() if checker is None else checker
    summaries = vault.list_credentials()

    def audit(summary) -> CredentialRuleError | None:
        credential = vault.get_credential_by_id(summary.id)
        if credential is None:
            logger.warning(timestamped(f"Credential '{summary.path_str}' disappeared during audit"))
            return None
        try:
            checker.check_credential(config, credential, vault)
        except CredentialRuleError as e:
            return e
        return None

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(audit, summaries))
    else:
        results = [audit(summary) for summary in summaries]

    failures = [result for result in results if result is not None]
    failures.sort(key=lambda error: (error.credential_path, error.credential_id))

    logger.info(timestamped(f"Audited {len(summaries)} credential(s), {len(failures)} failed"))
    return failures
