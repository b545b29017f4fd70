"""
Encryption utilities for the in-process buffer crypto backend.

Uses Fernet symmetric encryption to keep buffer files as ciphertext at rest.
The key is stored in a key file (default: <data_dir>/encryption.key) and
auto-generated on first use.

Security Note:
    This protects buffer contents in the git remote, but does NOT protect
    against compromise of the host running the mirror. Anyone holding both
    the repository and the key file can decrypt every buffer.
"""

import os
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


def _default_key_path() -> str:
    from config.paths import ENCRYPTION_KEY_FILE
    return ENCRYPTION_KEY_FILE


def get_or_create_key(key_path: Optional[str] = None) -> bytes:
    """
    Load existing encryption key or generate a new one.

    Args:
        key_path: Key file path (defaults to the data directory key file)

    Returns:
        bytes: Fernet encryption key

    Raises:
        IOError: If key file cannot be read or created
    """
    key_path = key_path or _default_key_path()

    if os.path.exists(key_path):
        try:
            with open(key_path, 'rb') as f:
                key = f.read().strip()
                logger.debug(f"Loaded encryption key from {key_path}")
                return key
        except OSError as e:
            logger.error(f"Failed to read encryption key from {key_path}: {e}")
            raise IOError(f"Cannot read encryption key: {e}")

    try:
        key = Fernet.generate_key()

        key_dir = os.path.dirname(key_path)
        if key_dir:
            os.makedirs(key_dir, exist_ok=True)

        # Write key with restrictive permissions
        with open(key_path, 'wb') as f:
            f.write(key)
        os.chmod(key_path, 0o600)

        logger.info(f"Generated new encryption key at {key_path}")
        return key

    except OSError as e:
        logger.error(f"Failed to generate or save encryption key: {e}")
        raise IOError(f"Cannot create encryption key: {e}")


def encrypt_bytes(plaintext: bytes, key_path: Optional[str] = None) -> bytes:
    """
    Encrypt raw bytes.

    Args:
        plaintext: Data to encrypt
        key_path: Key file path

    Returns:
        bytes: Fernet token

    Raises:
        IOError: If encryption key cannot be loaded
    """
    fernet = Fernet(get_or_create_key(key_path))
    return fernet.encrypt(plaintext)


def decrypt_bytes(token: bytes, key_path: Optional[str] = None) -> bytes:
    """
    Decrypt a Fernet token.

    An empty token decrypts to empty bytes so that a freshly created,
    never-written buffer file can be opened.

    Args:
        token: Fernet token as stored on disk
        key_path: Key file path

    Returns:
        bytes: Decrypted plaintext

    Raises:
        ValueError: If the token is invalid (key mismatch or corrupted data)
        IOError: If encryption key cannot be loaded
    """
    token = token.strip()
    if not token:
        return b''

    fernet = Fernet(get_or_create_key(key_path))
    try:
        return fernet.decrypt(token)
    except InvalidToken:
        logger.error("Failed to decrypt buffer: invalid token (key mismatch or corrupted data)")
        raise ValueError("Cannot decrypt buffer: invalid encryption token")
