"""
Vault password prompt handlers.

Every handler is called as handler(vault_path, keyfile_path, prompt) where
`prompt` is the resolved PromptConfig, and returns a VaultCredential.
"""
import os
import getpass
import logging

from vault_policy.config.config_policy import (
    ENV_KEYFILE_PATH,
    ENV_VAULT_PASSWORD,
    ENV_VAULT_PATH,
    SEP_SM,
)
from vault_policy.config.logging_config import timestamped
from vault_policy.errors import PromptError
from vault_policy.utils.secret_value import SecretValue, STRING
from vault_policy.utils.vault_utils import VaultCredential

logger = logging.getLogger(__name__)


def get_yes_no(prompt: str, default: bool) -> bool:
    """
    Ask a yes/no question until it is answered.

    Enter accepts the default.
    """
    hint = "(Y/n)" if default else "(y/N)"
    while True:
        val = input(f"{prompt} {hint}: ").strip().lower()
        if not val:
            return default
        if val in ("y", "yes"):
            return True
        if val in ("n", "no"):
            return False
        print("   Invalid, answer y or n")


def prompt_cli(vault_path: str, keyfile_path: str | None, prompt) -> VaultCredential:
    """
    Prompt for the vault password on the command line.

    Asks whether to remember the password when the prompt config allows it.

    Raises:
        PromptError: If the prompt was cancelled.
    """
    print(SEP_SM)
    print("Please provide vault credentials")
    print(SEP_SM)
    print(f" » Vault path ... {vault_path}")
    print(f" » Keyfile path ... {keyfile_path}")
    print()

    try:
        password = getpass.getpass("Vault password: ")
        save_password = False
        if prompt.allow_password_save:
            save_password = get_yes_no("Remember password?", prompt.password_save_default)
    except (EOFError, KeyboardInterrupt) as e:
        raise PromptError("Prompt not completed") from e
    print(SEP_SM)

    return VaultCredential(
        path=vault_path,
        password=SecretValue(STRING, password),
        keyfile_path=keyfile_path,
        save_password=save_password,
    )


def prompt_environment_variable(vault_path: str, keyfile_path: str | None, prompt=None) -> VaultCredential:
    """
    Read the vault credentials from environment variables. Pipeline friendly.

    Vault and keyfile paths fall back to the configured values. Never
    offers to remember the password.

    Raises:
        PromptError: If the password variable is missing or empty.
    """
    path = os.environ.get(ENV_VAULT_PATH)
    if not path:
        logger.info(timestamped(f"Missing environment variable {ENV_VAULT_PATH}, using config value: {vault_path}"))
        path = vault_path

    keyfile = os.environ.get(ENV_KEYFILE_PATH)
    if not keyfile:
        logger.info(timestamped(f"Missing environment variable {ENV_KEYFILE_PATH}, using config value: {keyfile_path}"))
        keyfile = keyfile_path

    password = os.environ.get(ENV_VAULT_PASSWORD)
    if not password:
        raise PromptError(f"Missing environment variable {ENV_VAULT_PASSWORD}")

    return VaultCredential(
        path=path,
        password=SecretValue(STRING, password),
        keyfile_path=keyfile,
        save_password=False,
    )


def prompt_popup(vault_path: str, keyfile_path: str | None, prompt) -> VaultCredential:
    """
    Pop up a small window asking for the vault password.

    Raises:
        PromptError: If no window can be shown or the user cancels.
    """
    import tkinter as tk
    from tkinter import messagebox, simpledialog

    try:
        root = tk.Tk()
    except tk.TclError as e:
        raise PromptError(f"Could not open password window: {e}") from e

    root.withdraw()
    try:
        password = simpledialog.askstring(
            "Vault password",
            f"Vault: {vault_path}\nKeyfile: {keyfile_path}\n\nPassword:",
            show="*",
            parent=root,
        )
        if password is None:
            raise PromptError("Prompt not completed")

        save_password = False
        if prompt.allow_password_save:
            save_password = messagebox.askyesno(
                "Remember password?",
                "Remember vault password in the OS credential manager?",
                default=messagebox.YES if prompt.password_save_default else messagebox.NO,
                parent=root,
            )
    finally:
        root.destroy()

    return VaultCredential(
        path=vault_path,
        password=SecretValue(STRING, password),
        keyfile_path=keyfile_path,
        save_password=bool(save_password),
    )
