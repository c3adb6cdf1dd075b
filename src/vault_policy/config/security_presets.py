# security_presets.py
"""
Security presets

Fixed, fully populated security configurations of increasing strictness.
Ages are in hours, decryption times in milliseconds.
"""
import math

# ==============================================================
# Vault restrictions
# ==============================================================
VAULT_RESTRICTION_PRESETS = {
    "none": {
        "min_password_length": 0,
        "max_password_age": math.inf,
        "require_keyfile": False,
        "min_decryption_time": 100,
        "allow_vault_with_code": True,
        "allow_keyfile_with_code": True,
        "allow_vault_and_keyfile_same_location": True,
        "password_complexity": {
            "min_character_categories": 1,
            "forbid_vault_name": False,
            "forbid_vault_path": False,
            "forbid_reuse": False,
        },
    },
    "basic": {
        "min_password_length": 10,
        "max_password_age": 17520,       # 2 years
        "require_keyfile": False,
        "min_decryption_time": 400,
        "allow_vault_with_code": True,
        "allow_keyfile_with_code": True,
        "allow_vault_and_keyfile_same_location": False,
        "password_complexity": {
            "min_character_categories": 2,
            "forbid_vault_name": False,
            "forbid_vault_path": False,
            "forbid_reuse": True,
        },
    },
    "good": {
        "min_password_length": 15,
        "max_password_age": 8760,        # 1 year
        "require_keyfile": True,
        "min_decryption_time": 700,
        "allow_vault_with_code": False,
        "allow_keyfile_with_code": True,
        "allow_vault_and_keyfile_same_location": False,
        "password_complexity": {
            "min_character_categories": 3,
            "forbid_vault_name": True,
            "forbid_vault_path": False,
            "forbid_reuse": True,
        },
    },
    "better": {
        "min_password_length": 30,
        "max_password_age": 2190,        # 3 months
        "require_keyfile": True,
        "min_decryption_time": 2000,
        "allow_vault_with_code": False,
        "allow_keyfile_with_code": True,
        "allow_vault_and_keyfile_same_location": False,
        "password_complexity": {
            "min_character_categories": 3,
            "forbid_vault_name": True,
            "forbid_vault_path": True,
            "forbid_reuse": True,
        },
    },
}

# ==============================================================
# Credential restrictions
# ==============================================================
CREDENTIAL_RESTRICTION_PRESETS = {
    "none": {
        "min_password_length": 0,
        "require_expiration": False,
        "allow_expired": True,
        "max_password_age": math.inf,
        "password_complexity": {
            "min_character_categories": 1,
            "forbid_username": False,
            "forbid_url": False,
            "forbid_reuse": False,
        },
    },
    "basic": {
        "min_password_length": 10,
        "require_expiration": False,
        "allow_expired": False,
        "max_password_age": 17520,
        "password_complexity": {
            "min_character_categories": 2,
            "forbid_username": True,
            "forbid_url": False,
            "forbid_reuse": True,
        },
    },
    "good": {
        "min_password_length": 15,
        "require_expiration": False,
        "allow_expired": False,
        "max_password_age": 8760,
        "password_complexity": {
            "min_character_categories": 3,
            "forbid_username": True,
            "forbid_url": True,
            "forbid_reuse": True,
        },
    },
    "better": {
        "min_password_length": 30,
        "require_expiration": True,
        "allow_expired": False,
        "max_password_age": 2190,
        "password_complexity": {
            "min_character_categories": 3,
            "forbid_username": True,
            "forbid_url": True,
            "forbid_reuse": True,
        },
    },
}

# ==============================================================
# Vault password prompt
# ==============================================================
# Method names resolve to handlers in vault_policy.utils.user_input
PROMPT_PRESETS = {
    "none": {
        "method": "cli",
        "allow_password_save": True,
        "password_save_default": True,
    },
    "basic": {
        "method": "popup",
        "allow_password_save": True,
        "password_save_default": False,
    },
    "good": {
        "method": "popup",
        "allow_password_save": False,
        "password_save_default": False,
    },
    "better": {
        "method": "popup",
        "allow_password_save": False,
        "password_save_default": False,
    },
}

SECURITY_PRESET_NAMES = tuple(VAULT_RESTRICTION_PRESETS)
