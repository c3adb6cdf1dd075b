"""
Security configuration resolution.

A security config is given as a preset name, a partial mapping of
overrides, or nothing at all, and is resolved into fully populated
dataclasses. Thresholds are not validated here: each rule checks its own
threshold when it is enabled, so one bad value disables one rule instead
of failing the whole config.
"""
from dataclasses import dataclass, field, fields
from functools import lru_cache
from typing import Callable, Mapping

from vault_policy.config.config_policy import DEFAULT_SECURITY_PRESET
from vault_policy.config.security_presets import (
    CREDENTIAL_RESTRICTION_PRESETS,
    PROMPT_PRESETS,
    VAULT_RESTRICTION_PRESETS,
)
from vault_policy.errors import SecurityConfigError
from vault_policy.utils import user_input

# Restriction overrides are merged onto this preset
RESTRICTION_BASE_PRESET = "better"

PROMPT_METHODS = {
    "cli": user_input.prompt_cli,
    "popup": user_input.prompt_popup,
    "env": user_input.prompt_environment_variable,
    "environment_variable": user_input.prompt_environment_variable,
}


@dataclass(frozen=True)
class VaultPasswordComplexity:
    min_character_categories: int
    forbid_vault_name: bool
    forbid_vault_path: bool
    forbid_reuse: bool


@dataclass(frozen=True)
class CredentialPasswordComplexity:
    min_character_categories: int
    forbid_username: bool
    forbid_url: bool
    forbid_reuse: bool


@dataclass(frozen=True)
class VaultRestriction:
    """
    Security restrictions placed on the vault itself.

    Attributes:
        min_password_length: Characters, 0 or more.
        max_password_age: Hours, above 0. math.inf never expires.
        require_keyfile: A keyfile is required as second factor.
        min_decryption_time: Milliseconds, 0 or more.
        allow_vault_with_code: The vault may be stored with source code.
        allow_keyfile_with_code: The keyfile may be stored with source code.
        allow_vault_and_keyfile_same_location: Both may share a repository,
            package or directory.
        password_complexity: Complexity rules for the vault password.
        preset_name: Preset this block was resolved from, if any. Not part
            of equality.
    """
    min_password_length: float
    max_password_age: float
    require_keyfile: bool
    min_decryption_time: float
    allow_vault_with_code: bool
    allow_keyfile_with_code: bool
    allow_vault_and_keyfile_same_location: bool
    password_complexity: VaultPasswordComplexity
    preset_name: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class CredentialRestriction:
    """
    Security restrictions placed on every credential in the vault.

    Attributes:
        min_password_length: Characters, 0 or more.
        require_expiration: Every credential needs an expiration date.
        allow_expired: Expired credentials may still be used.
        max_password_age: Hours, above 0. math.inf never expires.
        password_complexity: Complexity rules for credential passwords.
        preset_name: Preset this block was resolved from, if any. Not part
            of equality.
    """
    min_password_length: float
    require_expiration: bool
    allow_expired: bool
    max_password_age: float
    password_complexity: CredentialPasswordComplexity
    preset_name: str | None = field(default=None, compare=False)


@dataclass(frozen=True)
class PromptConfig:
    """
    How the vault password is asked for.

    Attributes:
        method: Handler called as method(vault_path, keyfile_path, prompt)
            returning a VaultCredential.
        allow_password_save: Offer to remember the password.
        password_save_default: Default answer for the remember option.
    """
    method: Callable
    allow_password_save: bool
    password_save_default: bool


@dataclass(frozen=True)
class ResolvedSecurityConfig:
    vault_restrictions: VaultRestriction
    credential_restrictions: CredentialRestriction
    prompt: PromptConfig
    preset_name: str | None = field(default=None, compare=False)


def resolve_security_config(config=None) -> ResolvedSecurityConfig:
    """
    Resolve an empty, full, partial or preset security config.

    Args:
        config: One of
            - None: the default preset
            - a preset name: "none", "basic", "good" or "better"
            - a mapping with any of "vault_restrictions",
              "credential_restrictions" and "prompt", merged onto the
              default preset
            - an already resolved config, returned unchanged

    Returns:
        ResolvedSecurityConfig

    Raises:
        SecurityConfigError: Unknown preset name, field or prompt method.
    """
    if config is None:
        return security_preset(DEFAULT_SECURITY_PRESET)
    if isinstance(config, ResolvedSecurityConfig):
        return config
    if isinstance(config, str):
        return security_preset(config)
    if not isinstance(config, Mapping):
        raise SecurityConfigError(f"Unsupported security config type '{type(config).__name__}'")

    _check_keys(config, ("vault_restrictions", "credential_restrictions", "prompt"),
                "security config")
    default = security_preset(DEFAULT_SECURITY_PRESET)

    return ResolvedSecurityConfig(
        vault_restrictions=resolve_vault_restrictions(
            config.get("vault_restrictions", default.vault_restrictions)),
        credential_restrictions=resolve_credential_restrictions(
            config.get("credential_restrictions", default.credential_restrictions)),
        prompt=resolve_prompt(config.get("prompt", default.prompt), default.prompt),
    )


@lru_cache(maxsize=None)
def security_preset(name: str) -> ResolvedSecurityConfig:
    """Build the named preset. Every call with the same name returns the same object."""
    if name not in VAULT_RESTRICTION_PRESETS:
        raise SecurityConfigError(f"Unknown security preset '{name}'")

    return ResolvedSecurityConfig(
        vault_restrictions=resolve_vault_restrictions(name),
        credential_restrictions=resolve_credential_restrictions(name),
        prompt=resolve_prompt(PROMPT_PRESETS[name]),
        preset_name=name,
    )


def resolve_vault_restrictions(restrictions) -> VaultRestriction:
    """Resolve a vault restriction preset name, mapping or dataclass."""
    return _resolve_restrictions(restrictions, VaultRestriction, VaultPasswordComplexity,
                                 VAULT_RESTRICTION_PRESETS, "vault restrictions")


def resolve_credential_restrictions(restrictions) -> CredentialRestriction:
    """Resolve a credential restriction preset name, mapping or dataclass."""
    return _resolve_restrictions(restrictions, CredentialRestriction, CredentialPasswordComplexity,
                                 CREDENTIAL_RESTRICTION_PRESETS, "credential restrictions")


def resolve_prompt(prompt, base: PromptConfig | None = None) -> PromptConfig:
    """
    Resolve a prompt block.

    Mapping fields are merged over `base`. A method given by name is
    replaced by its handler.
    """
    if isinstance(prompt, PromptConfig):
        return prompt
    if not isinstance(prompt, Mapping):
        raise SecurityConfigError(f"Unsupported prompt config type '{type(prompt).__name__}'")

    _check_keys(prompt, [f.name for f in fields(PromptConfig)], "prompt")
    merged = {}
    if base is not None:
        merged = {f.name: getattr(base, f.name) for f in fields(PromptConfig)}
    merged.update(prompt)

    missing = [f.name for f in fields(PromptConfig) if f.name not in merged]
    if missing:
        raise SecurityConfigError(f"Prompt config is missing {', '.join(missing)}")

    method = merged["method"]
    if isinstance(method, str):
        if method not in PROMPT_METHODS:
            raise SecurityConfigError(f"Unknown prompt method '{method}'")
        merged["method"] = PROMPT_METHODS[method]
    elif not callable(method):
        raise SecurityConfigError("Prompt method must be a name or a callable")

    return PromptConfig(**merged)


def _resolve_restrictions(restrictions, restriction_cls, complexity_cls, presets, label):
    if isinstance(restrictions, restriction_cls):
        return restrictions

    if isinstance(restrictions, str):
        if restrictions not in presets:
            raise SecurityConfigError(f"Unknown {label} preset '{restrictions}'")
        values = dict(presets[restrictions])
        values["password_complexity"] = complexity_cls(**values["password_complexity"])
        return restriction_cls(**values, preset_name=restrictions)

    if not isinstance(restrictions, Mapping):
        raise SecurityConfigError(f"Unsupported {label} type '{type(restrictions).__name__}'")

    allowed = [f.name for f in fields(restriction_cls) if f.name != "preset_name"]
    _check_keys(restrictions, allowed, label)

    base = presets[RESTRICTION_BASE_PRESET]
    values = {**base, **restrictions}

    # Merge complexity separately, a shallow merge would drop unspecified fields
    complexity = restrictions.get("password_complexity", {})
    if isinstance(complexity, complexity_cls):
        values["password_complexity"] = complexity
    else:
        if not isinstance(complexity, Mapping):
            raise SecurityConfigError(f"Unsupported {label} password complexity")
        _check_keys(complexity, [f.name for f in fields(complexity_cls)],
                    f"{label} password complexity")
        values["password_complexity"] = complexity_cls(**{**base["password_complexity"], **complexity})

    return restriction_cls(**values)


def _check_keys(mapping: Mapping, allowed, label: str) -> None:
    unknown = sorted(set(mapping) - set(allowed))
    if unknown:
        raise SecurityConfigError(f"Unknown {label} field(s): {', '.join(unknown)}")
