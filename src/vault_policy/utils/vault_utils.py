import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

import pendulum

from vault_policy.config.config_policy import HOUR_IN_MILLISECONDS
from vault_policy.config.logging_config import timestamped
from vault_policy.utils.credential import (
    Credential,
    CredentialSummary,
    VaultEntry,
    create_credential,
    create_credential_summary,
    to_datetime,
)
from vault_policy.utils.secret_value import SecretValue

logger = logging.getLogger(__name__)


@dataclass
class VaultMeta:
    """
    Vault metadata used by the vault rules.

    Attributes:
        name: Display name, may be empty.
        key_changed: When the master key last changed. None if unknown.
        custom_data: Free string map stored in the vault header.
    """
    name: str = ''
    key_changed: "pendulum.DateTime | str | None" = None
    custom_data: Dict[str, str] = field(default_factory=dict)


@dataclass
class VaultCredential:
    """
    Secrets needed to open a vault. Only lives for one open or check.

    Attributes:
        path: Path to the vault file.
        password: Vault master password.
        keyfile_path: Optional keyfile used as second factor.
        save_password: The user asked to remember the password.
    """
    path: str
    password: SecretValue
    keyfile_path: str | None = None
    save_password: bool = False

    def __repr__(self):
        return (
            f"VaultCredential(path={self.path}, "
            f"pw=<hidden>, "
            f"keyfile_path={self.keyfile_path}, "
            f"save_password={self.save_password})"
        )


class VaultHandle(ABC):
    """
    Read access to an open vault, as needed by the policy engine.

    The policy engine never writes through this handle.
    """

    @property
    @abstractmethod
    def meta(self) -> VaultMeta:
        ...

    @abstractmethod
    def list_credentials(self) -> List[CredentialSummary]:
        """Every credential in the vault, without secrets."""

    @abstractmethod
    def get_credential_by_id(self, credential_id: str) -> Credential | None:
        """A freshly built credential, or None if there is no such id."""


class MemoryVault(VaultHandle):
    """
    Vault kept in memory as a dict of VaultEntry records keyed by id.

    Credentials are rebuilt from the stored entries on every read.

    Args:
        entries: Initial entries.
        meta: Vault metadata. Defaults to an unnamed vault.
    """

    def __init__(self, entries: Iterable[VaultEntry] = (), meta: VaultMeta | None = None):
        self._meta = meta if meta is not None else VaultMeta()
        self.entries: Dict[str, VaultEntry] = {}
        for entry in entries:
            self.add_entry(entry)

    def __repr__(self):
        return f"MemoryVault(name={self._meta.name!r}, entries={len(self.entries)})"

    @property
    def meta(self) -> VaultMeta:
        return self._meta

    def add_entry(self, entry: VaultEntry) -> None:
        """
        Store an entry.

        Raises:
            ValueError: If an entry with the same id already exists.
        """
        if entry.id in self.entries:
            raise ValueError(f"Duplicate entry id '{entry.id}'")
        self.entries[entry.id] = entry

    def remove_entry(self, entry_id: str) -> VaultEntry:
        """
        Remove and return an entry.

        Raises:
            KeyError: If the entry does not exist.
        """
        return self.entries.pop(entry_id)

    def list_credentials(self) -> List[CredentialSummary]:
        return [create_credential_summary(entry) for entry in self.entries.values()]

    def get_credential_by_id(self, credential_id: str) -> Credential | None:
        entry = self.entries.get(credential_id)
        if entry is None:
            logger.debug(timestamped(f"No credential with id '{credential_id}'"))
            return None
        return create_credential(entry)


def vault_password_age(meta: VaultMeta, now=None) -> float | None:
    """
    Hours since the vault master key was changed.

    Returns:
        Age in hours, or None if the change time is unknown.
    """
    key_changed = to_datetime(meta.key_changed)
    if key_changed is None:
        return None
    now = pendulum.now() if now is None else to_datetime(now)
    return (now - key_changed).total_seconds() * 1000 / HOUR_IN_MILLISECONDS
