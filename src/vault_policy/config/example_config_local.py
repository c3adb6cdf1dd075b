# Local configuration file overrides standard config values. Never commit this file!
# Used for changing user defaults
from vault_policy.config.config_policy import STRICTNESS_THRESHOLDS

GIT_TIMEOUT = 30
STRICTNESS_THRESHOLDS["strict"] = 0.15

# Rename this file to config_local.py to enable it
