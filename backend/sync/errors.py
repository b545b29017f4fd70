"""
Error taxonomy for the buffer synchronization engine.

Every stage of the pipeline raises a subclass of SyncError. The sync service
catches SyncError at the pipeline boundary and collapses it into a single
description for the caller; the underlying cause survives only as text.

Hierarchy:
    SyncError
    ├── ConfigError              settings missing or malformed
    ├── RepoError                mirror could not be made ready
    │   ├── CloneFailedError
    │   ├── BranchNotFoundError
    │   └── CheckoutFailedError
    ├── CryptoError              encrypt/decrypt transform failed
    ├── BufferIOError            buffer file could not be opened or written
    └── GitError                 index/commit/push failed
        ├── StageFailedError
        ├── CommitFailedError
        └── PushFailedError
"""
from typing import Optional

__all__ = [
    'SyncError',
    'ConfigError',
    'RepoError',
    'CloneFailedError',
    'BranchNotFoundError',
    'CheckoutFailedError',
    'CryptoError',
    'BufferIOError',
    'GitError',
    'StageFailedError',
    'CommitFailedError',
    'PushFailedError',
]


class SyncError(Exception):
    """Base class for all pipeline failures."""
    stage = 'unknown'


class ConfigError(SyncError):
    """Raised when the sync settings cannot be loaded or validated."""
    stage = 'config'


class RepoError(SyncError):
    """Raised when the local mirror cannot be opened, cloned or checked out."""
    stage = 'repository'


class CloneFailedError(RepoError):
    pass


class BranchNotFoundError(RepoError):
    pass


class CheckoutFailedError(RepoError):
    pass


class CryptoError(SyncError):
    """
    Raised when an encrypt or decrypt transform fails.

    When the failing step is the re-encryption after a write, the buffer file
    is left as plaintext on disk and plaintext_exposed is True.
    """
    stage = 'crypto'

    def __init__(self, message: str, path: Optional[str] = None, plaintext_exposed: bool = False):
        super().__init__(message)
        self.path = path
        self.plaintext_exposed = plaintext_exposed


class BufferIOError(SyncError):
    """Raised when a buffer file cannot be opened or written."""
    stage = 'buffer'


class GitError(SyncError):
    """Raised when staging, committing or pushing fails."""
    stage = 'git'


class StageFailedError(GitError):
    stage = 'stage'


class CommitFailedError(GitError):
    stage = 'commit'


class PushFailedError(GitError):
    stage = 'push'
