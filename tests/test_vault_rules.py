"""Tests for the vault rules. Storage lookups are stubbed unless noted."""
import math

import pendulum
import pytest

from vault_policy.config.config_policy import DECRYPTION_TIME_PREFERENCE_KEY
from vault_policy.errors import RepositoryLookupError, VaultRuleError
from vault_policy.security_checker.engine import RuleStatus
from vault_policy.security_checker.vault_rules import VAULT_RULES, build_vault_rulebook
from vault_policy.utils import git_utils, path_utils
from vault_policy.utils.vault_utils import MemoryVault, VaultMeta

AGE = "vault/password/age"
CATEGORIES = "vault/password/complexity/min-character-categories"
FORBID_REUSE = "vault/password/complexity/forbid-reuse"
LENGTH = "vault/password/length"
DECRYPTION_TIME = "vault/decryption-time"
KEYFILE_REQUIRE = "vault/keyfile/require"
KEYFILE_WITH_CODE = "vault/keyfile/stored-with-code"
FORBID_NAME = "vault/password/complexity/forbid-vault-name"
FORBID_PATH = "vault/password/complexity/forbid-vault-path"
VAULT_WITH_CODE = "vault/stored-with-code"
WITH_KEYFILE = "vault/stored-with-keyfile"


@pytest.fixture
def no_storage_lookups(monkeypatch):
    """Outside any repository or package."""
    monkeypatch.setattr(git_utils, "get_root", lambda dir_path: None)
    monkeypatch.setattr(git_utils, "is_ignored", lambda path: False)
    monkeypatch.setattr(path_utils, "get_package_root", lambda dir_path: None)


class TestCatalog:

    def test_registration_order(self):
        names = [rule.name for rule in build_vault_rulebook().rules()]
        assert names == [
            AGE,
            CATEGORIES,
            FORBID_REUSE,
            LENGTH,
            DECRYPTION_TIME,
            KEYFILE_REQUIRE,
            KEYFILE_WITH_CODE,
            FORBID_NAME,
            FORBID_PATH,
            VAULT_WITH_CODE,
            WITH_KEYFILE,
        ]
        assert len(VAULT_RULES) == 11


class TestPasswordRules:

    def test_too_short(self, checker, configure, vault, vault_credential):
        config = configure(vault={"min_password_length": 30})
        with pytest.raises(VaultRuleError) as excinfo:
            checker.check_vault(config, vault, vault_credential("short"), selector=LENGTH)
        assert excinfo.value.vault == "Payroll"
        assert "Vault password too short" in excinfo.value.message

    def test_categories(self, checker, configure, vault, vault_credential):
        config = configure(vault_complexity={"min_character_categories": 4})
        with pytest.raises(VaultRuleError, match="only contains 3"):
            checker.check_vault(config, vault, vault_credential("Abc123"), selector=CATEGORIES)

    def test_reused_by_credential(self, checker, configure, vault, vault_credential, make_entry):
        config = configure(vault_complexity={"forbid_reuse": True})
        vault.add_entry(make_entry(title="Mail", group_path=["Work"], password="Zebra#Quantum!8871x"))
        with pytest.raises(VaultRuleError, match="'Work/Mail'"):
            checker.check_vault(config, vault, vault_credential(), selector=FORBID_REUSE)

    def test_not_reused(self, checker, configure, vault, vault_credential, make_entry):
        config = configure(vault_complexity={"forbid_reuse": True})
        vault.add_entry(make_entry(title="Mail", password="Zebra#Quantum!8871y"))
        report = checker.check_vault(config, vault, vault_credential(), selector=FORBID_REUSE)
        assert report.status_of(FORBID_REUSE) is RuleStatus.PASSED


class TestAge:

    def test_unknown_change_time(self, checker, configure, vault_credential):
        config = configure(vault={"max_password_age": 100})
        with pytest.raises(VaultRuleError, match="Assuming the worst"):
            checker.check_vault(config, MemoryVault(), vault_credential(), selector=AGE)

    def test_too_old(self, checker, configure, vault_credential):
        config = configure(vault={"max_password_age": 5})
        vault = MemoryVault(meta=VaultMeta(key_changed=pendulum.now().subtract(hours=10)))
        with pytest.raises(VaultRuleError, match="too old"):
            checker.check_vault(config, vault, vault_credential(), selector=AGE)

    def test_infinite_never_looks(self, checker, configure, vault_credential):
        config = configure(vault={"max_password_age": math.inf})
        report = checker.check_vault(config, MemoryVault(), vault_credential(), selector=AGE)
        assert report.status_of(AGE) is RuleStatus.PASSED

    def test_negative_is_a_configuration_error(self, checker, configure, vault, vault_credential):
        config = configure(vault={"max_password_age": -5})
        report = checker.check_vault(config, vault, vault_credential(), selector=AGE)
        assert report.status_of(AGE) is RuleStatus.CONFIG_ERROR


class TestDecryptionTime:

    def test_too_fast(self, checker, configure, vault_credential):
        config = configure(vault={"min_decryption_time": 2000})
        vault = MemoryVault(meta=VaultMeta(custom_data={DECRYPTION_TIME_PREFERENCE_KEY: "500"}))
        with pytest.raises(VaultRuleError, match="at least 2000ms"):
            checker.check_vault(config, vault, vault_credential(), selector=DECRYPTION_TIME)

    def test_slow_enough(self, checker, configure, vault, vault_credential):
        config = configure(vault={"min_decryption_time": 2000})
        report = checker.check_vault(config, vault, vault_credential(), selector=DECRYPTION_TIME)
        assert report.status_of(DECRYPTION_TIME) is RuleStatus.PASSED

    @pytest.mark.parametrize("custom_data", [{}, {DECRYPTION_TIME_PREFERENCE_KEY: "fast"}])
    def test_missing_preference(self, checker, configure, vault_credential, custom_data):
        vault = MemoryVault(meta=VaultMeta(custom_data=custom_data))
        report = checker.check_vault(configure(), vault, vault_credential(), selector=DECRYPTION_TIME)
        assert report.disabled[0].reason == "Could not fetch decryption time from vault"

    def test_negative_threshold(self, checker, configure, vault, vault_credential):
        config = configure(vault={"min_decryption_time": -1})
        report = checker.check_vault(config, vault, vault_credential(), selector=DECRYPTION_TIME)
        assert report.status_of(DECRYPTION_TIME) is RuleStatus.CONFIG_ERROR

    @pytest.mark.parametrize("threshold", ["2000", None, True])
    def test_non_numeric_threshold(self, checker, configure, vault, vault_credential, threshold):
        config = configure(vault={"min_decryption_time": threshold})
        report = checker.check_vault(config, vault, vault_credential(), selector=DECRYPTION_TIME)
        assert report.status_of(DECRYPTION_TIME) is RuleStatus.CONFIG_ERROR
        assert "must be a number" in report.config_errors[0].reason


class TestKeyfile:

    def test_required(self, checker, configure, vault, vault_credential):
        config = configure(vault={"require_keyfile": True})
        with pytest.raises(VaultRuleError) as excinfo:
            checker.check_vault(config, vault, vault_credential(), selector=KEYFILE_REQUIRE)
        assert excinfo.value.message == "Vault requires keyfile as second authentication factor"

    def test_present(self, checker, configure, vault, vault_credential, tmp_path):
        config = configure(vault={"require_keyfile": True})
        credential = vault_credential(keyfile_path=str(tmp_path / "team.key"))
        report = checker.check_vault(config, vault, credential, selector=KEYFILE_REQUIRE)
        assert report.status_of(KEYFILE_REQUIRE) is RuleStatus.PASSED

    def test_keyfile_with_code(self, checker, configure, vault, vault_credential, tmp_path, monkeypatch):
        monkeypatch.setattr(path_utils, "file_with_code", lambda path, cwd=None: True)
        config = configure(vault={"allow_keyfile_with_code": False})
        credential = vault_credential(keyfile_path=str(tmp_path / "team.key"))
        with pytest.raises(VaultRuleError) as excinfo:
            checker.check_vault(config, vault, credential, selector=KEYFILE_WITH_CODE)
        assert excinfo.value.message == "Keyfile is stored with source code"

    def test_keyfile_with_code_without_keyfile(self, checker, configure, vault, vault_credential):
        config = configure(vault={"allow_keyfile_with_code": False})
        report = checker.check_vault(config, vault, vault_credential(), selector=KEYFILE_WITH_CODE)
        assert report.disabled[0].reason == "No keyfile defined"

    def test_symlinks_are_resolved(self, checker, configure, vault, vault_credential, tmp_path, monkeypatch):
        real = tmp_path / "secrets" / "team.key"
        real.parent.mkdir()
        real.write_bytes(b"key")
        link = tmp_path / "team.key"
        link.symlink_to(real)

        seen = []
        monkeypatch.setattr(path_utils, "file_with_code", lambda path, cwd=None: seen.append(path) or False)
        config = configure(vault={"allow_keyfile_with_code": False})
        checker.check_vault(config, vault, vault_credential(keyfile_path=str(link)), selector=KEYFILE_WITH_CODE)
        assert seen == [str(real.resolve())]


class TestVaultLocation:

    def test_vault_with_code(self, checker, configure, vault, vault_credential, monkeypatch):
        monkeypatch.setattr(path_utils, "file_with_code", lambda path, cwd=None: True)
        config = configure(vault={"allow_vault_with_code": False})
        with pytest.raises(VaultRuleError, match="Vault is stored with source code"):
            checker.check_vault(config, vault, vault_credential(), selector=VAULT_WITH_CODE)

    def test_vault_not_with_code(self, checker, configure, vault, vault_credential, monkeypatch):
        monkeypatch.setattr(path_utils, "file_with_code", lambda path, cwd=None: False)
        config = configure(vault={"allow_vault_with_code": False})
        report = checker.check_vault(config, vault, vault_credential(), selector=VAULT_WITH_CODE)
        assert report.status_of(VAULT_WITH_CODE) is RuleStatus.PASSED

    def test_lookup_failure_propagates(self, checker, configure, vault, vault_credential, monkeypatch):
        def broken(path, cwd=None):
            raise RepositoryLookupError("git timed out")

        monkeypatch.setattr(path_utils, "file_with_code", broken)
        config = configure(vault={"allow_vault_with_code": False})
        with pytest.raises(RepositoryLookupError):
            checker.check_vault(config, vault, vault_credential(), selector=VAULT_WITH_CODE)


class TestStoredWithKeyfile:

    @pytest.fixture
    def config(self, configure):
        return configure(vault={"allow_vault_and_keyfile_same_location": False})

    def test_same_directory(self, checker, config, vault, vault_credential, tmp_path, no_storage_lookups):
        credential = vault_credential(keyfile_path=str(tmp_path / "team.key"))
        with pytest.raises(VaultRuleError, match="same directory"):
            checker.check_vault(config, vault, credential, selector=WITH_KEYFILE)

    def test_different_directories(self, checker, config, vault, vault_credential, tmp_path, no_storage_lookups):
        credential = vault_credential(keyfile_path=str(tmp_path / "usb" / "team.key"))
        report = checker.check_vault(config, vault, credential, selector=WITH_KEYFILE)
        assert report.status_of(WITH_KEYFILE) is RuleStatus.PASSED

    def test_same_repository(self, checker, config, vault, vault_credential, tmp_path, monkeypatch):
        monkeypatch.setattr(git_utils, "get_root", lambda dir_path: "/repo")
        monkeypatch.setattr(git_utils, "is_ignored", lambda path: False)
        credential = vault_credential(keyfile_path=str(tmp_path / "usb" / "team.key"))
        with pytest.raises(VaultRuleError, match="same Git repository @ /repo"):
            checker.check_vault(config, vault, credential, selector=WITH_KEYFILE)

    def test_same_repository_but_ignored(self, checker, config, vault, vault_credential, tmp_path, monkeypatch):
        keyfile = str(tmp_path / "usb" / "team.key")
        monkeypatch.setattr(git_utils, "get_root", lambda dir_path: "/repo")
        monkeypatch.setattr(git_utils, "is_ignored", lambda path: path.endswith("team.key"))
        report = checker.check_vault(config, vault, vault_credential(keyfile_path=keyfile), selector=WITH_KEYFILE)
        assert report.status_of(WITH_KEYFILE) is RuleStatus.PASSED

    def test_same_package(self, checker, config, vault, vault_credential, tmp_path, monkeypatch):
        monkeypatch.setattr(git_utils, "get_root", lambda dir_path: None)
        monkeypatch.setattr(path_utils, "get_package_root", lambda dir_path: "/project")
        credential = vault_credential(keyfile_path=str(tmp_path / "usb" / "team.key"))
        with pytest.raises(VaultRuleError, match="same package @ /project"):
            checker.check_vault(config, vault, credential, selector=WITH_KEYFILE)

    def test_no_keyfile(self, checker, config, vault, vault_credential):
        report = checker.check_vault(config, vault, vault_credential(), selector=WITH_KEYFILE)
        assert report.disabled[0].reason == "No keyfile defined"

    def test_allowed(self, checker, configure, vault, vault_credential, tmp_path):
        credential = vault_credential(keyfile_path=str(tmp_path / "team.key"))
        report = checker.check_vault(configure(), vault, credential, selector=WITH_KEYFILE)
        assert report.status_of(WITH_KEYFILE) is RuleStatus.DISABLED


class TestForbidNameAndPath:

    def test_password_contains_vault_name(self, checker, configure, vault, vault_credential):
        config = configure(vault_complexity={"forbid_vault_name": True})
        with pytest.raises(VaultRuleError, match="vault name"):
            checker.check_vault(config, vault, vault_credential("Payroll-2024-Secure!"), selector=FORBID_NAME)

    def test_unrelated_password(self, checker, configure, vault, vault_credential):
        config = configure(vault_complexity={"forbid_vault_name": True})
        report = checker.check_vault(config, vault, vault_credential(), selector=FORBID_NAME)
        assert report.status_of(FORBID_NAME) is RuleStatus.PASSED

    def test_unnamed_vault(self, checker, configure, vault_credential):
        config = configure(vault_complexity={"forbid_vault_name": True})
        report = checker.check_vault(config, MemoryVault(), vault_credential(), selector=FORBID_NAME)
        assert report.disabled[0].reason == "No vault name, nothing to check"

    def test_password_contains_vault_path(self, checker, configure, vault, vault_credential):
        config = configure(vault_complexity={"forbid_vault_path": True})
        credential = vault_credential("Finance-Team-2024!", path="/srv/vaults/finance.kdbx")
        with pytest.raises(VaultRuleError, match="vault file path"):
            checker.check_vault(config, vault, credential, selector=FORBID_PATH)

    def test_unrelated_path(self, checker, configure, vault, vault_credential):
        config = configure(vault_complexity={"forbid_vault_path": True})
        credential = vault_credential(path="/srv/vaults/finance.kdbx")
        report = checker.check_vault(config, vault, credential, selector=FORBID_PATH)
        assert report.status_of(FORBID_PATH) is RuleStatus.PASSED

    def test_empty_password(self, checker, configure, vault, vault_credential):
        config = configure(vault_complexity={"forbid_vault_path": True})
        report = checker.check_vault(config, vault, vault_credential(""), selector=FORBID_PATH)
        assert report.disabled[0].reason == "No vault password, nothing to check"


class TestFullPass:

    def test_none_preset_needs_no_lookups(self, checker, configure, vault, vault_credential, monkeypatch):
        def no_git(*args, **kwargs):
            raise AssertionError("git was called")

        monkeypatch.setattr(git_utils, "get_root", no_git)
        report = checker.check_vault(configure("none"), vault, vault_credential())
        assert [outcome.rule for outcome in report.passed] == [AGE, CATEGORIES, LENGTH, DECRYPTION_TIME]
        assert len(report.disabled) == 7

    def test_unnamed_vault_error(self, checker, configure, vault_credential):
        config = configure(vault={"min_password_length": 100})
        with pytest.raises(VaultRuleError) as excinfo:
            checker.check_vault(config, MemoryVault(), vault_credential(), selector=LENGTH)
        assert excinfo.value.vault == "???"
