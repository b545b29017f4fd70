"""
Local git mirror operations.

This module provides:
- GitRunner: git CLI subprocess runner with SSH key auth
- RepositoryManager: open/clone/checkout of the mirror
- CommitPipeline: stage, commit and push buffer changes
"""
from mirror.git_runner import GitRunner, GitNotAvailableError
from mirror.repository import Repository, RepositoryManager
from mirror.pipeline import CommitPipeline, COMMIT_TIMESTAMP_FORMAT

__all__ = [
    'GitRunner',
    'GitNotAvailableError',
    'Repository',
    'RepositoryManager',
    'CommitPipeline',
    'COMMIT_TIMESTAMP_FORMAT',
]
