"""Tests for the security checker entry points and the vault audit."""
import logging

import pytest

from vault_policy.config.security import resolve_security_config
from vault_policy.errors import CredentialRuleError, VaultRuleError
from vault_policy.security_checker.checker import (
    SecurityChecker,
    audit_vault_credentials,
    check_credential_security,
    check_vault_security,
    get_security_checker,
)
from vault_policy.security_checker.engine import RuleStatus
from vault_policy.utils.vault_utils import MemoryVault


class TestEntryPoints:

    def test_checker_is_shared(self):
        assert get_security_checker() is get_security_checker()

    def test_checkers_have_their_own_rule_books(self):
        assert SecurityChecker().vault_rules is not SecurityChecker().vault_rules

    def test_credential_error(self, configure, make_entry):
        config = configure(credential={"min_password_length": 10})
        vault = MemoryVault([make_entry(id="mail", title="Mail", group_path=["Work"], password="short")])

        with pytest.raises(CredentialRuleError) as excinfo:
            check_credential_security(config, vault.get_credential_by_id("mail"), vault)

        error = excinfo.value
        assert error.rule == "credential/password/length"
        assert error.credential_id == "mail"
        assert error.credential_path == ["Work", "Mail"]
        assert error.path_str == "Work/Mail"
        assert str(error).startswith(error.message + "\n")
        assert "brute force" in str(error)

    def test_credential_passes(self, configure, make_entry):
        vault = MemoryVault([make_entry(id="mail", password="Correct-Horse-Battery-9")])
        report = check_credential_security(configure(), vault.get_credential_by_id("mail"), vault)
        assert report.status_of("credential/password/length") is RuleStatus.PASSED

    def test_vault_error(self, configure, vault, vault_credential):
        config = configure(vault={"min_password_length": 40})
        with pytest.raises(VaultRuleError) as excinfo:
            check_vault_security(config, vault, vault_credential())
        assert excinfo.value.vault == "Payroll"
        assert excinfo.value.rule == "vault/password/length"

    def test_unnamed_vault(self, configure, vault_credential):
        config = configure(vault={"min_password_length": 40})
        with pytest.raises(VaultRuleError) as excinfo:
            check_vault_security(config, MemoryVault(), vault_credential())
        assert excinfo.value.vault == "???"

    def test_vault_passes(self, configure, vault, vault_credential):
        report = check_vault_security(configure(), vault, vault_credential())
        assert report.config_errors == []
        assert len(report.passed) == 4

    def test_errors_are_value_free(self, configure, make_entry):
        config = configure(credential={"min_password_length": 30})
        vault = MemoryVault([make_entry(id="mail", password="Correct-Horse-Battery-9")])
        with pytest.raises(CredentialRuleError) as excinfo:
            check_credential_security(config, vault.get_credential_by_id("mail"), vault)
        assert "Correct-Horse-Battery-9" not in str(excinfo.value)


class TestAudit:

    @pytest.fixture
    def audited_vault(self, make_entry):
        return MemoryVault([
            make_entry(id="a", title="Mail", group_path=["Work"], password="short"),
            make_entry(id="b", title="Bank", group_path=["Home"], password="long-enough-password"),
            make_entry(id="c", title="Old", group_path=["Archive"], password="tiny"),
        ])

    def test_failures_sorted_by_path(self, configure, audited_vault, caplog):
        caplog.set_level(logging.INFO)
        config = configure(credential={"min_password_length": 10})

        failures = audit_vault_credentials(config, audited_vault, checker=SecurityChecker())

        assert [failure.path_str for failure in failures] == ["Archive/Old", "Work/Mail"]
        assert all(failure.rule == "credential/password/length" for failure in failures)
        assert "Audited 3 credential(s), 2 failed" in caplog.text

    def test_parallel_audit_matches(self, configure, audited_vault):
        config = configure(credential={"min_password_length": 10})
        sequential = audit_vault_credentials(config, audited_vault)
        parallel = audit_vault_credentials(config, audited_vault, max_workers=4)
        assert [(e.credential_id, e.rule) for e in parallel] == [(e.credential_id, e.rule) for e in sequential]

    def test_empty_vault(self):
        assert audit_vault_credentials(resolve_security_config("better"), MemoryVault()) == []

    def test_audit_only_reads(self, configure, audited_vault):
        before = dict(audited_vault.entries)
        audit_vault_credentials(configure(credential={"min_password_length": 10}), audited_vault)
        assert audited_vault.entries == before
