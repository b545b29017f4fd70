"""
Buffer store: maps logical buffer names to files in the mirror and appends
text to them.

Buffers are ciphertext at rest. An append decrypts the file in place, writes
the new entry, and re-encrypts unconditionally, also when the write fails.
If the re-encryption fails, the file is left as plaintext on disk; that state
is reported through CryptoError.plaintext_exposed, logged at CRITICAL level,
and recorded with a marker file under .git/simple-text/plaintext. The next
append to a marked buffer skips the decrypt step and encrypts the plaintext
together with the new entry, then clears the marker.

Name resolution:
    Known categories (case-insensitive) map to canonical filenames.
    Anything else goes to unsorted/<day-month-year:hour-minute>. Two unknown
    buffers written in the same minute share one file.
"""
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional

from buffers.crypto import CryptoTransform
from sync.errors import BufferIOError, CryptoError

logger = logging.getLogger(__name__)

__all__ = [
    'BUFFER_TIMESTAMP_FORMAT',
    'KNOWN_BUFFERS',
    'OVERFLOW_DIR',
    'PLAINTEXT_MARKER_DIR',
    'BufferStore',
    'resolve_name',
]

KNOWN_BUFFERS: Dict[str, str] = {
    'places': 'places.txt',
    'todo': 'todo.txt',
    'ideas': 'ideas.txt',
    'reading': 'reading.txt',
    'journal': 'journal.txt',
    'quotes': 'quotes.txt',
    'shopping': 'shopping.txt',
}

OVERFLOW_DIR = 'unsorted'

# Relative to the mirror root
PLAINTEXT_MARKER_DIR = '.git/simple-text/plaintext'

# e.g. 07-Mar-24:14-05
BUFFER_TIMESTAMP_FORMAT = '%d-%b-%y:%H-%M'


def resolve_name(category: str, now: Optional[datetime] = None) -> str:
    """
    Resolve a buffer category to a path fragment under the buffer directory.

    Args:
        category: User-supplied category name
        now: Timestamp for unknown categories (defaults to local now)

    Returns:
        Canonical filename for known categories, otherwise
        'unsorted/<timestamp>'
    """
    canonical = KNOWN_BUFFERS.get(category.strip().lower())
    if canonical:
        return canonical

    stamp = (now or datetime.now()).strftime(BUFFER_TIMESTAMP_FORMAT)
    return f"{OVERFLOW_DIR}/{stamp}"


class BufferStore:
    """Appends text entries to encrypted buffer files inside the mirror."""

    def __init__(
        self,
        mirror_root: Path,
        buffer_dir_rel: str,
        transform: CryptoTransform,
        clock: Callable[[], datetime] = datetime.now,
        marker_root: Optional[Path] = None
    ):
        self.mirror_root = Path(mirror_root)
        self.buffer_root = self.mirror_root / buffer_dir_rel
        self.transform = transform
        self.clock = clock
        # Inside the git directory so markers are never staged or pushed
        self.marker_root = Path(marker_root) if marker_root else self.mirror_root / PLAINTEXT_MARKER_DIR

    def path_for(self, buffer_name: str) -> Path:
        """
        Absolute path of the file backing a buffer.

        Raises:
            BufferIOError: If the resolved path escapes the mirror
        """
        path = self.buffer_root / resolve_name(buffer_name, self.clock())

        # Resolve before any file operation so symlinks cannot point outside
        try:
            path.resolve().relative_to(self.mirror_root.resolve())
        except ValueError:
            raise BufferIOError(f"Buffer path escapes the mirror: {path}")
        return path

    async def append(self, buffer_name: str, text: str) -> Path:
        """
        Append a text entry to a buffer.

        The entry is written as a new line bracketed by blank lines.
        Prior content is preserved. A buffer marked as left in plaintext
        by an earlier run is appended to without decrypting.

        Args:
            buffer_name: Logical buffer name
            text: Entry text

        Returns:
            Path of the modified buffer file

        Raises:
            CryptoError: If decrypting or re-encrypting fails
            BufferIOError: If the file cannot be opened or written
        """
        path = self.path_for(buffer_name)

        if path.exists():
            if self.marker_for(path).exists():
                logger.warning(f"Buffer {path} is still plaintext from an earlier failed encrypt, not decrypting")
            else:
                await self.transform.decrypt(path)
        else:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise BufferIOError(f"Cannot create buffer directory {path.parent}: {e}")

        write_error = None
        try:
            await asyncio.to_thread(self._write_entry, path, text)
        except (OSError, ValueError) as e:
            write_error = BufferIOError(f"Cannot write buffer {path}: {e}")
        finally:
            # Plaintext never outlives this call unflagged
            if path.exists():
                await self._encrypt(path, cause=write_error)

        if write_error:
            raise write_error

        logger.info(f"Appended {len(text)} chars to buffer {buffer_name!r} ({path.name})")
        return path

    def marker_for(self, path: Path) -> Path:
        """Marker recording that a buffer was left as plaintext on disk."""
        return self.marker_root / Path(path).relative_to(self.mirror_root)

    async def _encrypt(self, path: Path, cause: Optional[Exception] = None) -> None:
        marker = self.marker_for(path)
        try:
            await self.transform.encrypt(path)
        except CryptoError as e:
            self._mark_plaintext(marker)
            logger.critical(f"Buffer left as PLAINTEXT on disk after encrypt failure: {path}: {e}")
            raise CryptoError(str(e), path=str(path), plaintext_exposed=True) from (cause or e)

        try:
            marker.unlink(missing_ok=True)
        except OSError as e:
            raise BufferIOError(f"Cannot clear plaintext marker {marker}: {e}")

    @staticmethod
    def _mark_plaintext(marker: Path) -> None:
        try:
            marker.parent.mkdir(parents=True, exist_ok=True)
            marker.touch()
        except OSError as e:
            logger.critical(f"Cannot record plaintext marker {marker}: {e}")

    @staticmethod
    def _write_entry(path: Path, text: str) -> None:
        with open(path, 'a', encoding='utf-8') as f:
            f.write(f"\n{text}\n")
