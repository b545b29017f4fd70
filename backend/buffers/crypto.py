"""
Crypto shim for buffer files.

A transform turns a single buffer file from plaintext into ciphertext (or
back) in place. Two backends are provided:

- CommandTransform: runs external executables (default `scramble` and
  `unscramble`) with the absolute file path as the sole argument. The
  process environment, including PATH, is inherited. Exit code zero is
  success; any other outcome, including failure to spawn, is a failure.
- FernetTransform: encrypts in process with a Fernet key file.

Both raise CryptoError on failure and leave the file as the failing step
left it.
"""
import asyncio
import logging
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from sync.errors import CryptoError
from utils.encryption import decrypt_bytes, encrypt_bytes

logger = logging.getLogger(__name__)

__all__ = [
    'CryptoTransform',
    'CommandTransform',
    'FernetTransform',
    'build_transform',
]


class CryptoTransform(Protocol):
    """In-place encrypt/decrypt capability for one file."""

    async def encrypt(self, path: Path) -> None:
        ...

    async def decrypt(self, path: Path) -> None:
        ...


class CommandTransform:
    """Transform backed by external encrypt/decrypt executables."""

    def __init__(
        self,
        encrypt_command: str = 'scramble',
        decrypt_command: str = 'unscramble',
        timeout: Optional[float] = None
    ):
        self.encrypt_command = encrypt_command
        self.decrypt_command = decrypt_command
        self.timeout = timeout

    async def encrypt(self, path: Path) -> None:
        await self._run(self.encrypt_command, path)

    async def decrypt(self, path: Path) -> None:
        await self._run(self.decrypt_command, path)

    async def _run(self, command: str, path: Path) -> None:
        """
        Run one transform command against a file.

        Raises:
            CryptoError: If the command cannot be started, times out,
                or exits non-zero
        """
        target = str(Path(path).resolve())

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                [command, target],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError:
            raise CryptoError(f"Transform '{command}' not found on PATH", path=target)
        except subprocess.TimeoutExpired:
            raise CryptoError(f"Transform '{command}' timed out after {self.timeout}s", path=target)
        except OSError as e:
            raise CryptoError(f"Transform '{command}' could not be started: {e}", path=target)

        if result.returncode != 0:
            detail = result.stderr.strip() if result.stderr else f"exit code {result.returncode}"
            raise CryptoError(f"Transform '{command}' failed on {target}: {detail}", path=target)

        logger.debug(f"Transform '{command}' applied to {target}")


class FernetTransform:
    """Transform that encrypts file contents in process with a Fernet key."""

    def __init__(self, key_path: Optional[str] = None):
        self.key_path = key_path

    async def encrypt(self, path: Path) -> None:
        await asyncio.to_thread(self._rewrite, Path(path), encrypt_bytes)

    async def decrypt(self, path: Path) -> None:
        await asyncio.to_thread(self._rewrite, Path(path), decrypt_bytes)

    def _rewrite(self, path: Path, transform) -> None:
        try:
            data = path.read_bytes()
            path.write_bytes(transform(data, self.key_path))
        except (ValueError, OSError) as e:
            raise CryptoError(f"Fernet transform failed on {path}: {e}", path=str(path))


def build_transform(config) -> CryptoTransform:
    """
    Build the transform selected by the sync settings.

    Args:
        config: SyncConfig

    Returns:
        CommandTransform or FernetTransform
    """
    if config.crypto_backend == 'fernet':
        return FernetTransform(key_path=config.fernet_key_path)
    return CommandTransform(
        encrypt_command=config.encrypt_command,
        decrypt_command=config.decrypt_command,
        timeout=config.crypto_timeout,
    )
