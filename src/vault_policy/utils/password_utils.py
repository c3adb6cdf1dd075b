import re
import logging
from urllib.parse import urlsplit

from vault_policy.config.config_policy import PATH_SEPARATOR
from vault_policy.config.logging_config import timestamped
from vault_policy.utils.secret_value import SecretValue

logger = logging.getLogger(__name__)

# Lowercase, uppercase, digits, and a crude match for symbols:
# anything that is not a Latin letter, a digit or whitespace.
CHARACTER_CATEGORIES = (
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"[0-9]"),
    re.compile(r"[^a-zA-Z\d\s]"),
)

_IPV4 = re.compile(r"^(?:\d{1,3}\.){3}\d{1,3}$")
_DOMAIN_LIKE = re.compile(r"\w\.\w")


def count_character_categories(password: str) -> int:
    """
    Count the number of character categories present in a password.

    Categories:
        - Lowercase characters a-z (Latin alphabet)
        - Uppercase characters A-Z (Latin alphabet)
        - Digits 0-9
        - Special characters (!, $, #, %, etc.)

    Returns:
        Number of categories used, 0 to 4.
    """
    return sum(1 for category in CHARACTER_CATEGORIES if category.search(password))


def is_email_like(username: str) -> bool:
    """True for 'local@domain.tld' shaped usernames."""
    parts = username.split("@")
    if len(parts) != 2:
        return False
    local, domain = parts
    if not local:
        return False
    return bool(_DOMAIN_LIKE.search(domain))


def username_local_part(username: str) -> str:
    """
    Reduce an email-like username to the part before '@'.

    Crude on purpose: 'user+variant@host' keeps the '+variant'.
    Anything that does not look like an email is returned unchanged.
    """
    if is_email_like(username):
        return username.split("@")[0]
    return username


def url_domains(url: str) -> list[str]:
    """
    Split the host of a URL into fragments.

    An IPv4 address is kept whole, a host name is split on dots.
    URLs without a scheme are treated as starting with a host name.

    Returns:
        Host fragments, empty if the URL has no host.

    Raises:
        ValueError: If the URL can not be split, e.g. an unclosed IPv6 bracket.
    """
    host = urlsplit(url).hostname
    if host is None:
        host = urlsplit("//" + url).hostname
    if not host:
        return []

    if _IPV4.match(host):
        return [host]
    return host.split(".")


def find_reused_password(password: SecretValue, vault, exclude_id: str | None = None):
    """
    Look for another credential in the vault using the same password.

    Credentials are fetched one by one and compared with exact equality.
    The vault is only read.

    Args:
        password: Password to look for.
        vault: Vault handle offering `list_credentials()` and
            `get_credential_by_id()`.
        exclude_id: Skip this credential, usually the one being checked.

    Returns:
        The first credential with the same password, or None.
    """
    for summary in vault.list_credentials():
        if summary.id == exclude_id:
            continue

        other = vault.get_credential_by_id(summary.id)
        if other is None:
            # Removed between listing and fetching
            logger.warning(timestamped(
                f"Credential '{PATH_SEPARATOR.join(summary.path)}' disappeared during reuse check"
            ))
            continue

        if password.equals(other.data.password):
            return other

    return None
