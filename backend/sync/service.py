"""
Buffer synchronization service.

Runs the whole pipeline for one request:

    idle -> repo_ready -> buffer_modified -> staged -> committed -> pushed
                  any step failing ------------------------------> failed

The mirror (working tree, index, refs) is one shared mutable resource, so
every entry point holds the single-writer gate for its whole run. Requests
are serialized, never interleaved on the same mirror.

Settings are re-read at the start of every run. Failures never retry
automatically; retry_push() re-sends an existing local commit without
re-committing.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from buffers.crypto import build_transform
from buffers.store import BufferStore
from config.settings import load_sync_config
from mirror.git_runner import GitRunner
from mirror.pipeline import CommitPipeline
from mirror.repository import Repository, RepositoryManager
from sync.errors import SyncError

logger = logging.getLogger(__name__)

__all__ = [
    'SyncStage',
    'SyncResult',
    'SyncService',
    'get_sync_service',
]


class SyncStage(str, Enum):
    IDLE = 'idle'
    REPO_READY = 'repo_ready'
    BUFFER_MODIFIED = 'buffer_modified'
    STAGED = 'staged'
    COMMITTED = 'committed'
    PUSHED = 'pushed'
    FAILED = 'failed'


# Valid state transitions (from_state -> to_state); FAILED is reachable from any non-terminal state
VALID_TRANSITIONS = {
    SyncStage.IDLE: [SyncStage.REPO_READY],
    SyncStage.REPO_READY: [SyncStage.BUFFER_MODIFIED, SyncStage.PUSHED],
    SyncStage.BUFFER_MODIFIED: [SyncStage.STAGED],
    SyncStage.STAGED: [SyncStage.COMMITTED],
    SyncStage.COMMITTED: [SyncStage.PUSHED],
    SyncStage.PUSHED: [],  # Terminal state
    SyncStage.FAILED: [],  # Terminal state
}


@dataclass
class SyncResult:
    """Result of one pipeline run."""
    success: bool
    stage: SyncStage
    buffer: str
    path: Optional[str] = None  # Relative to the mirror root
    commit: Optional[str] = None  # Set once committed, even if the push failed
    error: Optional[str] = None
    error_type: Optional[str] = None
    failed_stage: Optional[str] = None
    plaintext_exposed: bool = False

    def advance(self, to_stage: SyncStage) -> None:
        """Move to the next stage, rejecting out-of-order transitions."""
        if to_stage != SyncStage.FAILED and to_stage not in VALID_TRANSITIONS[self.stage]:
            raise RuntimeError(f"Invalid sync stage transition: {self.stage.value} -> {to_stage.value}")
        if self.stage in (SyncStage.PUSHED, SyncStage.FAILED):
            raise RuntimeError(f"Sync already finished in stage {self.stage.value}")
        logger.debug(f"Buffer {self.buffer!r}: {self.stage.value} -> {to_stage.value}")
        self.stage = to_stage

    def fail(self, error: SyncError) -> None:
        self.advance(SyncStage.FAILED)
        self.success = False
        self.error = str(error)
        self.error_type = type(error).__name__
        self.failed_stage = error.stage
        self.plaintext_exposed = getattr(error, 'plaintext_exposed', False)


class SyncService:
    """
    Entry points of the synchronization engine.

    Collaborators are injectable so tests can swap the settings source,
    the crypto backend and the clock.
    """

    def __init__(
        self,
        config_loader: Callable = load_sync_config,
        transform_factory: Callable = build_transform,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.config_loader = config_loader
        self.transform_factory = transform_factory
        self.clock = clock
        self._gate = asyncio.Lock()

    async def open_or_reconcile_repo(self) -> Repository:
        """
        Open (or clone) the mirror and check out the configured branch.

        Raises:
            ConfigError: If the settings cannot be loaded
            RepoError: If the mirror cannot be made ready
        """
        async with self._gate:
            config = self.config_loader()
            repos = RepositoryManager(GitRunner(config.ssh_key_path))
            repo = await repos.ensure_ready(config)
            logger.info(f"Mirror ready at {repo.path} on {repo.branch} ({repo.head[:12]})")
            return repo

    async def sync_buffer(self, name: str, text: str) -> SyncResult:
        """
        Append text to a buffer, commit it and push it.

        Never raises SyncError: failures come back as a failed SyncResult
        whose error carries the collapsed description.

        Args:
            name: Logical buffer name
            text: Entry to append

        Returns:
            SyncResult with success status, final stage and any error
        """
        async with self._gate:
            result = SyncResult(success=False, stage=SyncStage.IDLE, buffer=name)
            try:
                await self._run_pipeline(result, name, text)
            except SyncError as e:
                result.fail(e)
                if result.plaintext_exposed:
                    logger.critical(f"Sync of buffer {name!r} left plaintext on disk: {e}")
                else:
                    logger.error(f"Sync of buffer {name!r} failed at {e.stage}: {e}")
                return result

            result.success = True
            logger.info(f"Synced buffer {name!r} as {result.commit[:12]}")
            return result

    async def retry_push(self) -> str:
        """
        Push the current local branch again without re-committing.

        Returns:
            SHA of the pushed HEAD

        Raises:
            ConfigError, RepoError, PushFailedError
        """
        async with self._gate:
            config = self.config_loader()
            runner = GitRunner(config.ssh_key_path)
            repo = await RepositoryManager(runner).ensure_ready(config)
            await CommitPipeline(runner, clock=self.clock).push(repo, config)
            return repo.head

    async def _run_pipeline(self, result: SyncResult, name: str, text: str) -> None:
        config = self.config_loader()
        runner = GitRunner(config.ssh_key_path)
        pipeline = CommitPipeline(runner, clock=self.clock)

        repo = await RepositoryManager(runner).ensure_ready(config)
        result.advance(SyncStage.REPO_READY)

        store = BufferStore(
            repo.path,
            config.buffer_dir_rel,
            self.transform_factory(config),
            clock=self.clock
        )
        buffer_path = await store.append(name, text)
        result.advance(SyncStage.BUFFER_MODIFIED)

        result.path = await pipeline.stage(buffer_path, repo)
        result.advance(SyncStage.STAGED)

        result.commit = await pipeline.commit(repo)
        result.advance(SyncStage.COMMITTED)

        await pipeline.push(repo, config)
        result.advance(SyncStage.PUSHED)


# Singleton instance with thread-safe initialization
_sync_service: Optional[SyncService] = None
_sync_service_lock = threading.Lock()


def get_sync_service() -> SyncService:
    """
    Get or create the singleton SyncService instance.

    One instance means one gate per process, which is what keeps requests
    against the mirror serialized.
    """
    global _sync_service

    if _sync_service is not None:
        return _sync_service

    with _sync_service_lock:
        if _sync_service is None:
            _sync_service = SyncService()
        return _sync_service
