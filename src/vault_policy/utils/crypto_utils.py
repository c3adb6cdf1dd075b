import secrets
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

# ChaCha20Poly1305 nonce length. DO NOT CHANGE
NONCE_LEN = 12


def new_memory_key() -> bytes:
    """
    Generate a random key used only to seal values held in memory.

    The key never leaves the process and is never derived from a
    password. Each SecretValue gets its own key.

    Returns:
        32 random bytes.
    """
    return ChaCha20Poly1305.generate_key()


def seal(plaintext: bytes, key: bytes) -> bytearray:
    """
    Encrypt bytes using ChaCha20-Poly1305.

    A random nonce is generated for each call and stored in front of the
    ciphertext and authentication tag.

    Args:
        plaintext: Raw bytes to protect.
        key: Memory key from `new_memory_key`.

    Returns:
        A mutable buffer containing nonce + ciphertext, so it can be wiped.

    Security:
        - Nonces are random and never reused with the same key.
        - Keeps plaintext out of memory dumps and accidental logging.
    """
    aead = ChaCha20Poly1305(key)
    nonce = secrets.token_bytes(NONCE_LEN)

    ciphertext = aead.encrypt(
        nonce=nonce,
        data=plaintext,
        associated_data=None
    )
    return bytearray(nonce + ciphertext)


def unseal(token: bytearray, key: bytes) -> bytes:
    """
    Decrypt a buffer produced by `seal`.

    Args:
        token: nonce + ciphertext buffer.
        key: The key used when sealing.

    Returns:
        The original plaintext bytes.

    Raises:
        InvalidTag: If the buffer was modified or wiped.
    """
    aead = ChaCha20Poly1305(key)
    raw = bytes(token)
    nonce = raw[:NONCE_LEN]
    ciphertext = raw[NONCE_LEN:]

    return aead.decrypt(
        nonce=nonce,
        data=ciphertext,
        associated_data=None
    )
