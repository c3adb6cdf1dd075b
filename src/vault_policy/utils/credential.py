from dataclasses import dataclass, field
from typing import List, Tuple, Dict
import pendulum

from vault_policy.config.config_policy import HOUR_IN_MILLISECONDS, PATH_SEPARATOR
from vault_policy.utils.secret_value import SecretValue, STRING

# (last modified, password) of an earlier version of an entry. A plain str
# password is a placeholder for "no password set" and is never compared.
HistoryItem = Tuple["pendulum.DateTime | str | None", "SecretValue | str"]


@dataclass
class CredentialData:
    """
    The credential data itself: title, username, url, notes and password.

    Custom attributes go into `other`. Protected custom attributes are
    SecretValues.
    """
    title: str = ''
    username: str = ''
    url: str = ''
    notes: str = ''
    password: SecretValue = field(default_factory=lambda: SecretValue(STRING, ''))
    other: Dict[str, "str | SecretValue"] = field(default_factory=dict)


@dataclass
class CredentialSummary:
    """
    A credential without any secret values, as shown in listings.
    """
    id: str
    has_expiration: bool
    expired: bool
    password_age: float
    path: List[str]
    data: Dict[str, str] = field(default_factory=dict)

    @property
    def path_str(self) -> str:
        return PATH_SEPARATOR.join(self.path)


@dataclass
class Credential:
    """
    A credential as consumed by the credential rules.

    Built fresh from vault storage on every read and never mutated by the
    policy engine.

    Attributes:
        id: Identifier assigned by the vault.
        has_expiration: The credential has an expiration date.
        expired: The expiration date has passed. Always False without one.
        password_age: Hours since the password was last changed.
        path: Group names from the root down, then the title.
        data: Username, password, etc.
        attachments: Binary secrets stored with the credential.
    """
    id: str
    has_expiration: bool
    expired: bool
    password_age: float
    path: List[str]
    data: CredentialData
    attachments: Dict[str, SecretValue] = field(default_factory=dict)

    def __repr__(self):
        return (
            f"Credential(id={self.id}, "
            f"path={self.path_str}, "
            f"pw=<hidden>, "
            f"attachments={len(self.attachments)}, "
            f"password_age={self.password_age:.1f}h)"
        )

    @property
    def path_str(self) -> str:
        return PATH_SEPARATOR.join(self.path)

    def wipe(self):
        """
        Wipe every secret held by the credential.

        Side Effects:
            The password, protected attributes and attachments can not be
            exposed afterwards.
        """
        secrets = [self.data.password, *self.attachments.values()]
        secrets.extend(v for v in self.data.other.values() if isinstance(v, SecretValue))
        for secret in secrets:
            secret.wipe()


@dataclass
class VaultEntry:
    """
    A stored vault record, the raw material credentials are built from.

    Times accept pendulum DateTimes or ISO-8601 strings. An entry without a
    password keeps the empty str placeholder.
    """
    id: str
    title: str
    group_path: List[str] = field(default_factory=list)
    username: str = ''
    url: str = ''
    notes: str = ''
    password: "SecretValue | str" = ''

    pw_hist: List[HistoryItem] = field(default_factory=list)

    # Used to add any other fields into the entry.
    other: Dict[str, "str | SecretValue"] = field(default_factory=dict)
    attachments: Dict[str, SecretValue] = field(default_factory=dict)

    expires: bool = False
    expiry_time: "pendulum.DateTime | str | None" = None
    created: str = field(default_factory=lambda: pendulum.now().to_iso8601_string())
    edited: "pendulum.DateTime | str | None" = field(default_factory=lambda: pendulum.now().to_iso8601_string())

    def __post_init__(self):
        """
        Validate and normalize required fields.

        Ensures the title field is a string.
        """
        if not isinstance(self.title, str):
            raise TypeError("Title must be a string")
        self.title = self.title.strip()

    def __repr__(self):
        return (
            f"VaultEntry(id={self.id}, "
            f"title={self.title}, "
            f"username={self.username}, "
            f"pw=<hidden>, "
            f"pw_hist_len={len(self.pw_hist)}, "
            f"edited={self.edited})"
        )


def to_datetime(value) -> "pendulum.DateTime | None":
    """Parse an ISO-8601 string, pass DateTimes and None through."""
    if value is None or value == '':
        return None
    if isinstance(value, str):
        return pendulum.parse(value)
    return pendulum.instance(value)


def resolve_password_age(current_password: SecretValue,
                         last_modified,
                         history: List[HistoryItem],
                         now=None) -> float:
    """
    Crawl through the credential history to find when the password last changed.

    Saving an entry without touching the password updates its modified
    time, so the modified time alone overstates how fresh the password is.
    Walking back from the newest history item, every item holding the same
    password moves the creation time back; the first different password
    ends the walk.

    Args:
        current_password: The password in use now.
        last_modified: When the current record was last modified.
        history: (last modified, password) of earlier versions, any order.
        now: Reference time, defaults to pendulum.now().

    Returns:
        Password age in hours.
    """
    now = pendulum.now() if now is None else to_datetime(now)
    password_created = to_datetime(last_modified) or now

    dated = [(to_datetime(changed), password) for changed, password in history]
    # Newest first, unknown times last
    dated.sort(key=lambda item: item[0].timestamp() if item[0] else float("-inf"), reverse=True)

    for changed, history_password in dated:
        if not isinstance(history_password, SecretValue):
            continue

        if current_password.equals(history_password):
            if changed is not None:
                password_created = changed
            continue
        break

    elapsed = now - password_created
    return elapsed.total_seconds() * 1000 / HOUR_IN_MILLISECONDS


def _entry_password(entry: VaultEntry) -> SecretValue:
    if isinstance(entry.password, SecretValue):
        return entry.password
    # The password is not set. Keep our types clean
    return SecretValue(STRING, entry.password or '')


def _expiration(entry: VaultEntry, now) -> Tuple[bool, bool]:
    has_expiration = entry.expires is True
    expiry_time = to_datetime(entry.expiry_time)
    expired = has_expiration and expiry_time is not None and expiry_time < now
    return has_expiration, expired


def create_credential_summary(entry: VaultEntry, now=None) -> CredentialSummary:
    """
    Create a credential listing item from a vault entry.

    Will not include any secret values.
    """
    now = pendulum.now() if now is None else to_datetime(now)
    has_expiration, expired = _expiration(entry, now)

    data = {
        "title": entry.title,
        "username": entry.username,
        "url": entry.url,
        "notes": entry.notes,
    }
    for key, val in entry.other.items():
        if isinstance(val, SecretValue):
            continue
        data[key] = val

    return CredentialSummary(
        id=entry.id,
        has_expiration=has_expiration,
        expired=expired,
        password_age=resolve_password_age(_entry_password(entry), entry.edited, entry.pw_hist, now),
        path=[*entry.group_path, entry.title],
        data=data,
    )


def create_credential(entry: VaultEntry, now=None) -> Credential:
    """
    Create a credential, secrets included, from a vault entry.

    Args:
        entry: Stored record.
        now: Reference time for expiration and age, defaults to now.

    Returns:
        A new Credential. The entry's SecretValues are shared, not copied.
    """
    now = pendulum.now() if now is None else to_datetime(now)
    summary = create_credential_summary(entry, now)

    return Credential(
        id=summary.id,
        has_expiration=summary.has_expiration,
        expired=summary.expired,
        password_age=summary.password_age,
        path=summary.path,
        data=CredentialData(
            title=entry.title,
            username=entry.username,
            url=entry.url,
            notes=entry.notes,
            password=_entry_password(entry),
            other=dict(entry.other),
        ),
        attachments=dict(entry.attachments),
    )
