# config_policy.py
"""
Configuration constants
"""
# ==============================================================
# Package settings
# ==============================================================
UTF8 = "utf-8"

# ==============================================================
# Security presets
# ==============================================================
# Preset used when no security config is given
DEFAULT_SECURITY_PRESET = "better"

# Rule selector that matches every rule in a rule book
ALL_RULES = "**/*"

# ==============================================================
# Fuzzy matching
# ==============================================================
# Shortest substring considered when looking for partial matches
MIN_SUBSTRING_LENGTH = 5
# Smallest step between substring lengths
MIN_SUBSTRING_LENGTH_STEP = 2
# Memoized substring lists (plain strings only, secrets are never cached)
SUBSTRING_CACHE_SIZE = 3

# Maximum score accepted by the fuzzy index. 0 is an exact match.
STRICTNESS_THRESHOLDS = {
    "loose": 0.4,
    "normal": 0.3,
    "strict": 0.2,
}

# Bitap search defaults
FUZZY_LOCATION = 0
FUZZY_DISTANCE = 100
FUZZY_MAX_BITS = 32          # Longest pattern chunk searched at once
FUZZY_MIN_SCORE = 0.001      # Best score a non-identical match can get
FUZZY_NORM_MANTISSA = 3

# ==============================================================
# Rules
# ==============================================================
# Fragments of a URL host this short are not checked against the password
MIN_URL_FRAGMENT_LENGTH = 4

# Vault custom data key holding the preferred decryption time (ms)
DECRYPTION_TIME_PREFERENCE_KEY = "KPXC_DECRYPTION_TIME_PREFERENCE"

HOUR_IN_MILLISECONDS = 3_600_000

# ==============================================================
# Storage location lookups
# ==============================================================
GIT_EXECUTABLE = "git"
GIT_TIMEOUT = 10             # Seconds before a git lookup is abandoned

# Files marking the root of a code package
PACKAGE_MANIFESTS = (
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "package.json",
)

# ==============================================================
# Prompting
# ==============================================================
ENV_VAULT_PATH = "VAULT_POLICY_VAULT_PATH"
ENV_KEYFILE_PATH = "VAULT_POLICY_KEYFILE_PATH"
ENV_VAULT_PASSWORD = "VAULT_POLICY_VAULT_PASSWORD"

# ==============================================================
# Display & formatting
# ==============================================================
SECRET_PLACEHOLDER = "[SECRET]"
PATH_SEPARATOR = "/"
UNKNOWN_VAULT_NAME = "???"
SEP_SM = "-" * 50

# ==============================================================
# Optional: local overrides
# Local configuration file overrides standard config values

# ==============================================================
try:
    from vault_policy.config.config_local import *
except ImportError:
    pass  # No local config - use defaults above
