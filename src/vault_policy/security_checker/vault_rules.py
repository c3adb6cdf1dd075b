"""
Vault rules.

Every factory returns a Rule checking the vault itself, with a
VaultRuleContext as context.
"""
import os
import math
from dataclasses import dataclass

from vault_policy.config.config_policy import DECRYPTION_TIME_PREFERENCE_KEY
from vault_policy.config.security import ResolvedSecurityConfig
from vault_policy.errors import PolicyViolation, RuleConfigurationError
from vault_policy.security_checker.credential_rules import (
    describe,
    check_character_categories,
    validate_max_password_age,
    validate_min_character_categories,
    validate_min_password_length,
    validate_number,
)
from vault_policy.security_checker.engine import ENABLED, Disabled, Rule, RuleBook
from vault_policy.utils import git_utils, path_utils
from vault_policy.utils.partial_string_match import detect_partial_string_match
from vault_policy.utils.password_utils import find_reused_password
from vault_policy.utils.vault_utils import VaultCredential, VaultHandle, vault_password_age


@dataclass
class VaultRuleContext:
    """
    Attributes:
        config: Resolved security config.
        vault: The opened vault.
        vault_credential: Secrets used to open it.
        cwd: Directory of the running code, defaults to os.getcwd().
    """
    config: ResolvedSecurityConfig
    vault: VaultHandle
    vault_credential: VaultCredential
    cwd: str | None = None


def _restrictions(ctx: VaultRuleContext):
    return ctx.config.vault_restrictions


def decryption_time_preference(vault: VaultHandle) -> float | None:
    """The preferred decryption time in ms stored in the vault, None if missing or not a number."""
    value = vault.meta.custom_data.get(DECRYPTION_TIME_PREFERENCE_KEY)
    try:
        decryption_time = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(decryption_time):
        return None
    return decryption_time


# ==============================================================
# Password rules
# ==============================================================
def vault_password_age_rule() -> Rule:
    def enable(ctx):
        validate_max_password_age(_restrictions(ctx).max_password_age)
        return ENABLED

    def define(ctx):
        max_password_age = _restrictions(ctx).max_password_age
        if math.isinf(max_password_age):
            # Always true, no need to compute
            return True

        password_age = vault_password_age(ctx.vault.meta)
        if password_age is None:
            raise PolicyViolation("Could not find when the vault password was last changed. Assuming the worst.")
        if password_age > max_password_age:
            raise PolicyViolation("Vault password is too old, change it")
        return True

    return Rule(
        name="vault/password/age",
        description=describe("""
            Ensure that your vault password is not used for too long.

            Over time, more and more people know a password and the risk of it
            being exposed somewhere grows. Team members come and go. Changing the
            vault password periodically limits who can still open the vault.
        """),
        enable=enable,
        define=define,
    )


def vault_password_character_categories() -> Rule:
    def enable(ctx):
        validate_min_character_categories(_restrictions(ctx).password_complexity.min_character_categories)
        return ENABLED

    def define(ctx):
        return check_character_categories(
            ctx.vault_credential.password,
            _restrictions(ctx).password_complexity.min_character_categories,
            "Vault",
        )

    return Rule(
        name="vault/password/complexity/min-character-categories",
        description=describe("""
            Require the vault password to use characters from several character
            categories: lowercase, uppercase, digits and special characters.
        """),
        enable=enable,
        define=define,
    )


def vault_password_forbid_reuse() -> Rule:
    def enable(ctx):
        if not _restrictions(ctx).password_complexity.forbid_reuse:
            return Disabled("Disabled by security config `forbid_reuse`")
        if ctx.vault_credential.password.length == 0:
            return Disabled("No vault password, nothing to check")
        return ENABLED

    def define(ctx):
        other = find_reused_password(ctx.vault_credential.password, ctx.vault)
        if other is not None:
            raise PolicyViolation(f"Vault password is used by a credential: '{other.path_str}'")
        return True

    return Rule(
        name="vault/password/complexity/forbid-reuse",
        description=describe("""
            Ensure that the vault password is not used by a credential in the
            vault.

            Anyone who learns that credential would also be able to open the
            whole vault.
        """),
        enable=enable,
        define=define,
    )


def vault_password_length() -> Rule:
    def enable(ctx):
        validate_min_password_length(_restrictions(ctx).min_password_length)
        return ENABLED

    def define(ctx):
        min_password_length = _restrictions(ctx).min_password_length
        if ctx.vault_credential.password.length < min_password_length:
            raise PolicyViolation(
                f"Vault password too short. Should be at least {min_password_length} characters."
            )
        return True

    return Rule(
        name="vault/password/length",
        description=describe("""
            Require the vault password to have a minimum length.

            Longer passwords take more time to break with brute force attacks.
        """),
        enable=enable,
        define=define,
    )


def vault_password_forbid_vault_name() -> Rule:
    def enable(ctx):
        if not _restrictions(ctx).password_complexity.forbid_vault_name:
            return Disabled("Disabled by security config `forbid_vault_name`")
        if not ctx.vault.meta.name:
            return Disabled("No vault name, nothing to check")
        if ctx.vault_credential.password.length == 0:
            return Disabled("No vault password, nothing to check")
        return ENABLED

    def define(ctx):
        if detect_partial_string_match(ctx.vault_credential.password, ctx.vault.meta.name, "strict"):
            raise PolicyViolation("Vault password contains (part of) the vault name")
        return True

    return Rule(
        name="vault/password/complexity/forbid-vault-name",
        description=describe("""
            Ensure that the vault password does not contain part of the vault
            name.

            Detection is done with fuzzy matching.
        """),
        enable=enable,
        define=define,
    )


def vault_password_forbid_vault_path() -> Rule:
    def enable(ctx):
        if not _restrictions(ctx).password_complexity.forbid_vault_path:
            return Disabled("Disabled by security config `forbid_vault_path`")
        if not ctx.vault_credential.path:
            return Disabled("No vault path, nothing to check")
        if ctx.vault_credential.password.length == 0:
            return Disabled("No vault password, nothing to check")
        return ENABLED

    def define(ctx):
        if detect_partial_string_match(ctx.vault_credential.password, ctx.vault_credential.path, "strict"):
            raise PolicyViolation("Vault password contains (part of) the vault file path")
        return True

    return Rule(
        name="vault/password/complexity/forbid-vault-path",
        description=describe("""
            Ensure that the vault password does not contain part of the vault
            file path.

            Detection is done with fuzzy matching.
        """),
        enable=enable,
        define=define,
    )


# ==============================================================
# Decryption & keyfile rules
# ==============================================================
def vault_decryption_time() -> Rule:
    def enable(ctx):
        validate_number(_restrictions(ctx).min_decryption_time, "Min decryption time")
        if _restrictions(ctx).min_decryption_time < 0:
            raise RuleConfigurationError("Configuration error: Min decryption time can not be below 0")
        if decryption_time_preference(ctx.vault) is None:
            return Disabled("Could not fetch decryption time from vault")
        return ENABLED

    def define(ctx):
        min_decryption_time = _restrictions(ctx).min_decryption_time
        if decryption_time_preference(ctx.vault) < min_decryption_time:
            raise PolicyViolation(
                f"Vault decryption time is too short. Should be at least {min_decryption_time}ms."
            )
        return True

    return Rule(
        name="vault/decryption-time",
        description=describe("""
            Require the vault key derivation to take a minimum amount of time.

            Every guess in a brute force attack costs the same time. A slower key
            derivation makes guessing the vault password far more expensive.
        """),
        enable=enable,
        define=define,
    )


def vault_keyfile_require() -> Rule:
    def enable(ctx):
        if not _restrictions(ctx).require_keyfile:
            return Disabled("Disabled by security config `require_keyfile`")
        return ENABLED

    def define(ctx):
        return bool(ctx.vault_credential.keyfile_path)

    return Rule(
        name="vault/keyfile/require",
        description=describe("""
            Enforce a keyfile as a second authentication factor.

            With a second factor, a leaked vault password alone does not open
            the vault.
        """),
        enable=enable,
        define=define,
        punishment=lambda ctx, message: "Vault requires keyfile as second authentication factor",
    )


def vault_keyfile_stored_with_code() -> Rule:
    def enable(ctx):
        if _restrictions(ctx).allow_keyfile_with_code:
            return Disabled("Disabled by security config `allow_keyfile_with_code`")
        if not ctx.vault_credential.keyfile_path:
            # Whether a keyfile is required is checked by vault/keyfile/require
            return Disabled("No keyfile defined")
        return ENABLED

    def define(ctx):
        keyfile_path = path_utils.resolve_symlink(ctx.vault_credential.keyfile_path)
        return not path_utils.file_with_code(keyfile_path, ctx.cwd)

    return Rule(
        name="vault/keyfile/stored-with-code",
        description=describe("""
            Do not store the keyfile with the application code.

            If the source code leaks, the keyfile should not leak with it. The
            keyfile may not be in the same Git repository as the working
            directory, unless it is ignored, nor in the same package.

            Symlinks are resolved. Only the real file path is used.
        """),
        enable=enable,
        define=define,
        punishment=lambda ctx, message: "Keyfile is stored with source code",
    )


def vault_stored_with_code() -> Rule:
    def enable(ctx):
        if _restrictions(ctx).allow_vault_with_code:
            return Disabled("Disabled by security config `allow_vault_with_code`")
        return ENABLED

    def define(ctx):
        vault_path = path_utils.resolve_symlink(ctx.vault_credential.path)
        return not path_utils.file_with_code(vault_path, ctx.cwd)

    return Rule(
        name="vault/stored-with-code",
        description=describe("""
            Do not store the vault with the application code.

            A vault in the repository travels to every clone and every remote.
            The vault may not be in the same Git repository as the working
            directory, unless it is ignored, nor in the same package.

            Symlinks are resolved. Only the real file path is used.
        """),
        enable=enable,
        define=define,
        punishment=lambda ctx, message: "Vault is stored with source code",
    )


def vault_stored_with_keyfile() -> Rule:
    def enable(ctx):
        if _restrictions(ctx).allow_vault_and_keyfile_same_location:
            return Disabled("Disabled by security config `allow_vault_and_keyfile_same_location`")
        if not ctx.vault_credential.keyfile_path:
            return Disabled("No keyfile defined")
        return ENABLED

    def define(ctx):
        vault_path = path_utils.resolve_symlink(ctx.vault_credential.path)
        keyfile_path = path_utils.resolve_symlink(ctx.vault_credential.keyfile_path)
        vault_dir = os.path.dirname(vault_path)
        keyfile_dir = os.path.dirname(keyfile_path)

        vault_git_root = git_utils.get_root(vault_dir)
        if vault_git_root is not None and vault_git_root == git_utils.get_root(keyfile_dir):
            if git_utils.is_ignored(vault_path) or git_utils.is_ignored(keyfile_path):
                # Same repository, but not both on the remote
                return True
            raise PolicyViolation(f"Vault and keyfile are in the same Git repository @ {vault_git_root}")

        vault_package_root = path_utils.get_package_root(vault_dir)
        if vault_package_root is not None and vault_package_root == path_utils.get_package_root(keyfile_dir):
            raise PolicyViolation(f"Vault and keyfile are in the same package @ {vault_package_root}")

        if vault_dir == keyfile_dir:
            raise PolicyViolation(f"Vault and keyfile are in the same directory @ {vault_dir}")

        return True

    return Rule(
        name="vault/stored-with-keyfile",
        description=describe("""
            Do not store the vault and its keyfile in the same place.

            Whoever gets hold of one should not get the other for free. Checked
            in order: same Git repository (unless one of them is ignored), same
            package, same directory.

            Symlinks are resolved. Only the real file paths are used.
        """),
        enable=enable,
        define=define,
    )


VAULT_RULES = (
    vault_password_age_rule,
    vault_password_character_categories,
    vault_password_forbid_reuse,
    vault_password_length,
    vault_decryption_time,
    vault_keyfile_require,
    vault_keyfile_stored_with_code,
    vault_password_forbid_vault_name,
    vault_password_forbid_vault_path,
    vault_stored_with_code,
    vault_stored_with_keyfile,
)


def build_vault_rulebook() -> RuleBook:
    """A new rule book with every vault rule, in enforcement order."""
    rulebook = RuleBook("vault")
    for factory in VAULT_RULES:
        rulebook.add(factory())
    return rulebook
