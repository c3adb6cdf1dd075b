"""Pytest configuration and shared fixtures."""
import itertools
from dataclasses import replace

import pendulum
import pytest

from vault_policy.config.config_policy import DECRYPTION_TIME_PREFERENCE_KEY
from vault_policy.config.security import resolve_security_config
from vault_policy.security_checker.checker import SecurityChecker
from vault_policy.utils.credential import VaultEntry, create_credential
from vault_policy.utils.partial_string_match import _memoized_substrings
from vault_policy.utils.secret_value import SecretValue, STRING
from vault_policy.utils.vault_utils import MemoryVault, VaultCredential, VaultMeta


@pytest.fixture(autouse=True)
def clear_substring_cache():
    """Start every test with an empty substring cache."""
    _memoized_substrings.cache_clear()
    yield
    _memoized_substrings.cache_clear()


@pytest.fixture
def secret():
    """Build string secrets: secret("hunter2")."""
    def _secret(value: str) -> SecretValue:
        return SecretValue(STRING, value)
    return _secret


@pytest.fixture
def make_entry():
    """Build vault entries with sequential ids and a plain password argument."""
    ids = itertools.count(1)

    def _make(title="Entry", password="", group_path=("Root",), **kwargs):
        entry_id = kwargs.pop("id", f"entry-{next(ids)}")
        return VaultEntry(
            id=entry_id,
            title=title,
            group_path=list(group_path),
            password=SecretValue(STRING, password) if password else "",
            **kwargs,
        )
    return _make


@pytest.fixture
def make_credential(make_entry):
    """Build a credential straight from entry arguments."""
    def _make(**kwargs):
        return create_credential(make_entry(**kwargs))
    return _make


@pytest.fixture
def vault():
    """Empty named vault with a fresh master key and a decryption preference."""
    meta = VaultMeta(
        name="Payroll",
        key_changed=pendulum.now().subtract(hours=1),
        custom_data={DECRYPTION_TIME_PREFERENCE_KEY: "2500"},
    )
    return MemoryVault(meta=meta)


@pytest.fixture
def vault_credential(secret, tmp_path):
    def _make(password="Zebra#Quantum!8871x", keyfile_path=None, path=None):
        return VaultCredential(
            path=path or str(tmp_path / "team.kdbx"),
            password=secret(password),
            keyfile_path=keyfile_path,
        )
    return _make


@pytest.fixture
def configure():
    """
    Start from a preset and override single restriction fields.

    configure("none", credential={"min_password_length": 10},
              credential_complexity={"forbid_username": True})
    """
    def _configure(preset="none", vault=None, credential=None,
                   vault_complexity=None, credential_complexity=None):
        config = resolve_security_config(preset)

        vault_restrictions = config.vault_restrictions
        if vault_complexity:
            vault_restrictions = replace(
                vault_restrictions,
                password_complexity=replace(vault_restrictions.password_complexity, **vault_complexity),
            )
        vault_restrictions = replace(vault_restrictions, preset_name=None, **(vault or {}))

        credential_restrictions = config.credential_restrictions
        if credential_complexity:
            credential_restrictions = replace(
                credential_restrictions,
                password_complexity=replace(credential_restrictions.password_complexity, **credential_complexity),
            )
        credential_restrictions = replace(credential_restrictions, preset_name=None, **(credential or {}))

        return replace(
            config,
            vault_restrictions=vault_restrictions,
            credential_restrictions=credential_restrictions,
            preset_name=None,
        )
    return _configure


@pytest.fixture
def checker():
    return SecurityChecker()
