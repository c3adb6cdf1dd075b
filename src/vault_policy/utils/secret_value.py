import hmac

from vault_policy.config.config_policy import SECRET_PLACEHOLDER, UTF8
from vault_policy.utils.crypto_utils import new_memory_key, seal, unseal

STRING = "string"
BINARY = "binary"


class SecretValue:
    """
    Wrapper for values you want to keep secret.

    The plaintext is sealed in memory with a per-instance key and only
    comes back out through `expose()`. Printing, logging or inspecting the
    object never shows the value. This makes it harder to leak a secret by
    accident, not impossible.

    Args:
        type: "string" for passwords and text fields, "binary" for
            attachments and other raw data.
        value: The plaintext, a str for "string" or bytes for "binary".

    Raises:
        ValueError: If the type is not supported.
        TypeError: If the value does not match the type.
    """

    def __init__(self, type: str, value):
        if type == STRING:
            if not isinstance(value, str):
                raise TypeError("String secret expects a str value")
            raw = value.encode(UTF8)
        elif type == BINARY:
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise TypeError("Binary secret expects a bytes value")
            raw = bytes(value)
        else:
            raise ValueError(f"Unexpected type {type}")

        self.type = type
        self._length = len(value) if type == STRING else len(raw)
        self._key = new_memory_key()
        self._sealed = seal(raw, self._key)
        self._wiped = False
        del raw

    def __repr__(self):
        return f"SecretValue(type={self.type!r}, value={SECRET_PLACEHOLDER!r})"

    __str__ = __repr__

    def __reduce_ex__(self, protocol):
        raise TypeError("SecretValue can not be pickled or copied")

    def __len__(self):
        return self._length

    @property
    def length(self) -> int:
        """Characters for string secrets, bytes for binary ones."""
        return self._length

    def expose(self):
        """
        Expose the secret.

        Keep the result in the narrowest scope possible.

        Returns:
            The original str or bytes.

        Raises:
            ValueError: If the secret was wiped or has an unknown type.
        """
        if self._wiped:
            raise ValueError("Secret value was wiped")

        if self.type == STRING:
            return unseal(self._sealed, self._key).decode(UTF8)
        if self.type == BINARY:
            return unseal(self._sealed, self._key)
        raise ValueError("Unexpected secret type")

    def equals(self, other: "SecretValue") -> bool:
        """
        Check if two secrets are the same.

        Secrets of different types or lengths are never equal and are not
        exposed. Otherwise both are exposed once and compared in constant
        time.
        """
        if self.type != other.type:
            return False
        if self.length != other.length:
            return False

        mine = self.expose()
        theirs = other.expose()
        if self.type == STRING:
            return hmac.compare_digest(mine.encode(UTF8), theirs.encode(UTF8))
        return hmac.compare_digest(mine, theirs)

    def wipe(self) -> None:
        """
        Overwrite the sealed buffer.

        The secret can not be exposed afterwards.
        """
        for i in range(len(self._sealed)):
            self._sealed[i] = 0
        self._wiped = True
