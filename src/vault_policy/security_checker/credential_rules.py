"""
Credential rules.

Every factory returns a Rule checking one credential, with a
CredentialRuleContext as context. The threshold checks are shared with the
vault rules.
"""
import math
import numbers
from dataclasses import dataclass
from textwrap import dedent

from vault_policy.config.config_policy import MIN_URL_FRAGMENT_LENGTH
from vault_policy.config.security import ResolvedSecurityConfig
from vault_policy.errors import PolicyViolation, RuleConfigurationError
from vault_policy.security_checker.engine import ENABLED, Disabled, Rule, RuleBook
from vault_policy.utils.credential import Credential
from vault_policy.utils.partial_string_match import detect_partial_string_match
from vault_policy.utils.password_utils import (
    CHARACTER_CATEGORIES,
    count_character_categories,
    find_reused_password,
    url_domains,
    username_local_part,
)
from vault_policy.utils.vault_utils import VaultHandle


@dataclass
class CredentialRuleContext:
    config: ResolvedSecurityConfig
    credential: Credential
    vault: VaultHandle


# ==============================================================
# Shared threshold checks
# ==============================================================
def validate_number(value, label: str) -> None:
    """Raise RuleConfigurationError unless `value` is an int or a float."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or math.isnan(value):
        raise RuleConfigurationError(f"Configuration error: {label} must be a number, got {value!r}")


def validate_min_password_length(min_password_length) -> None:
    validate_number(min_password_length, "Min password length")
    if min_password_length < 0:
        raise RuleConfigurationError("Configuration error: Min password length can not be below 0")


def validate_max_password_age(max_password_age) -> None:
    validate_number(max_password_age, "Max password age")
    if max_password_age <= 0:
        raise RuleConfigurationError(
            "Configuration error: Max password age can not be equal to or below 0. "
            "If you want this rule to never fail, use math.inf."
        )


def validate_min_character_categories(min_character_categories) -> None:
    validate_number(min_character_categories, "Min character category count")
    if min_character_categories < 1:
        raise RuleConfigurationError("Configuration error: Min character category count can not be below 1")
    if min_character_categories > len(CHARACTER_CATEGORIES):
        raise RuleConfigurationError(
            "Configuration error: Min character category count can not be above "
            f"{len(CHARACTER_CATEGORIES)}"
        )


def check_character_categories(password, min_character_categories: int, subject: str) -> bool:
    """
    Raise PolicyViolation if the password uses too few character categories.

    A requirement of 1 always passes and the password is not exposed.
    """
    if min_character_categories == 1:
        return True

    category_count = count_character_categories(password.expose())
    if category_count < min_character_categories:
        raise PolicyViolation(
            f"{subject} password not complex enough. "
            f"Should contain at least {min_character_categories} characters categories "
            f"but only contains {category_count}."
        )
    return True


def describe(text: str) -> str:
    return dedent(text).strip()


def _restrictions(ctx: CredentialRuleContext):
    return ctx.config.credential_restrictions


# ==============================================================
# Rules
# ==============================================================
def credential_allow_expired() -> Rule:
    def enable(ctx):
        if _restrictions(ctx).allow_expired:
            return Disabled("Disabled by security config `allow_expired`")
        return ENABLED

    def define(ctx):
        if ctx.credential.expired:
            raise PolicyViolation("Credential expired")
        return True

    return Rule(
        name="credential/expired",
        description=describe("""
            Do not allow use of expired credentials.

            An expiration date is set for a reason. Update the credential or its
            expiration date.
        """),
        enable=enable,
        define=define,
    )


def credential_require_expiration() -> Rule:
    def enable(ctx):
        if not _restrictions(ctx).require_expiration:
            return Disabled("Disabled by security config `require_expiration`")
        return ENABLED

    def define(ctx):
        if not ctx.credential.has_expiration:
            raise PolicyViolation("Credential has no expiration date")
        return True

    return Rule(
        name="credential/require-expiration",
        description=describe("""
            Require every credential to have an expiration date.

            An expiration date forces a periodic review of the credential, even
            when the password age rule is relaxed.
        """),
        enable=enable,
        define=define,
    )


def credential_password_length() -> Rule:
    def enable(ctx):
        validate_min_password_length(_restrictions(ctx).min_password_length)
        return ENABLED

    def define(ctx):
        min_password_length = _restrictions(ctx).min_password_length
        if ctx.credential.data.password.length < min_password_length:
            raise PolicyViolation(
                "Credential password too short. "
                f"Should be at least {min_password_length} characters."
            )
        return True

    return Rule(
        name="credential/password/length",
        description=describe("""
            Require the credential password to have a minimum length.

            Longer passwords take more time to break with brute force attacks.
        """),
        enable=enable,
        define=define,
    )


def credential_password_age() -> Rule:
    def enable(ctx):
        validate_max_password_age(_restrictions(ctx).max_password_age)
        return ENABLED

    def define(ctx):
        max_password_age = _restrictions(ctx).max_password_age
        if math.isinf(max_password_age):
            return True
        if ctx.credential.password_age > max_password_age:
            raise PolicyViolation("Credential password is too old, change it")
        return True

    return Rule(
        name="credential/password/age",
        description=describe("""
            Ensure that your credential password is not used too long.

            Over time, more and more people know a password and the risk of it
            being exposed somewhere grows. Team members come and go. Changing the
            password periodically limits who still has access.
        """),
        enable=enable,
        define=define,
    )


def credential_password_character_categories() -> Rule:
    def enable(ctx):
        validate_min_character_categories(_restrictions(ctx).password_complexity.min_character_categories)
        return ENABLED

    def define(ctx):
        return check_character_categories(
            ctx.credential.data.password,
            _restrictions(ctx).password_complexity.min_character_categories,
            "Credential",
        )

    return Rule(
        name="credential/password/complexity/min-character-categories",
        description=describe("""
            Require the credential password to use characters from several
            character categories.

            Categories:
            - Uppercase characters A-Z (Latin alphabet)
            - Lowercase characters a-z (Latin alphabet)
            - Digits 0-9
            - Special characters (!, $, #, %, etc.)
        """),
        enable=enable,
        define=define,
    )


def credential_password_forbid_url() -> Rule:
    def enable(ctx):
        if not _restrictions(ctx).password_complexity.forbid_url:
            return Disabled("Disabled by security config `forbid_url`")
        if not ctx.credential.data.url:
            return Disabled("Credential has no URL")
        if ctx.credential.data.password.length == 0:
            return Disabled("No password, nothing to check")
        return ENABLED

    def define(ctx):
        password = ctx.credential.data.password
        try:
            fragments = url_domains(ctx.credential.data.url)
        except ValueError as e:
            raise PolicyViolation("Credential URL can not be parsed") from e

        for fragment in fragments:
            if len(fragment) < MIN_URL_FRAGMENT_LENGTH:
                continue
            if detect_partial_string_match(password, fragment, "strict"):
                raise PolicyViolation("Password contains (part of) URL domain")
        return True

    return Rule(
        name="credential/password/complexity/forbid-url",
        description=describe("""
            Ensure that the credential password does not contain part of the
            website domain.

            Building a password from a non-secret, like the login target, makes
            it easier to remember and easier to break.

            Detection is done with fuzzy matching. Only the domain and
            subdomains are considered.
        """),
        enable=enable,
        define=define,
    )


def credential_password_forbid_username() -> Rule:
    def enable(ctx):
        if not _restrictions(ctx).password_complexity.forbid_username:
            return Disabled("Disabled by security config `forbid_username`")
        if not ctx.credential.data.username:
            return Disabled("No username, nothing to check")
        if ctx.credential.data.password.length == 0:
            return Disabled("No password, nothing to check")
        return ENABLED

    def define(ctx):
        username = username_local_part(ctx.credential.data.username)
        if detect_partial_string_match(ctx.credential.data.password, username, "strict"):
            raise PolicyViolation("Password contains (part of) username")
        return True

    return Rule(
        name="credential/password/complexity/forbid-username",
        description=describe("""
            Ensure that the credential password does not contain the username.

            Building a password from a non-secret, like the username, makes it
            easier to remember and easier to break.

            Detection is done with fuzzy matching. For email-like usernames only
            the part before '@' is considered.
        """),
        enable=enable,
        define=define,
    )


def credential_password_forbid_reuse() -> Rule:
    def enable(ctx):
        if not _restrictions(ctx).password_complexity.forbid_reuse:
            return Disabled("Disabled by security config `forbid_reuse`")
        if ctx.credential.data.password.length == 0:
            return Disabled("No password, nothing to check")
        return ENABLED

    def define(ctx):
        other = find_reused_password(ctx.credential.data.password, ctx.vault,
                                     exclude_id=ctx.credential.id)
        if other is not None:
            raise PolicyViolation(f"Credential password is used by another credential: '{other.path_str}'")
        return True

    return Rule(
        name="credential/password/complexity/forbid-reuse",
        description=describe("""
            Ensure that the credential password is not used by any other
            credential in the vault.

            When one system leaks a reused password, every other system using it
            is exposed too.
        """),
        enable=enable,
        define=define,
    )


CREDENTIAL_RULES = (
    credential_allow_expired,
    credential_password_age,
    credential_password_character_categories,
    credential_password_forbid_url,
    credential_password_forbid_username,
    credential_password_forbid_reuse,
    credential_password_length,
    credential_require_expiration,
)


def build_credential_rulebook() -> RuleBook:
    """A new rule book with every credential rule, in enforcement order."""
    rulebook = RuleBook("credential")
    for factory in CREDENTIAL_RULES:
        rulebook.add(factory())
    return rulebook
