"""
Repository lifecycle for the local mirror.

ensure_ready() makes sure the mirror at local_dir exists, is a git
repository, and has the configured branch checked out:

1. Open the mirror; clone the remote into local_dir if it is absent or
   not a repository.
2. If HEAD is not refs/heads/<branch>, create or fast-forward the local
   branch from refs/remotes/<remote>/<branch> and check it out.
3. Already on the right branch: only the checks above run.

The remote branch must already exist; this module never creates one.
A local branch ahead of the remote-tracking ref keeps its unpushed commits.
A diverged local branch is reported, never merged or reset.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from mirror.git_runner import CLONE_TIMEOUT, GitRunner
from sync.errors import BranchNotFoundError, CheckoutFailedError, CloneFailedError

logger = logging.getLogger(__name__)

__all__ = [
    'Repository',
    'RepositoryManager',
]


@dataclass(frozen=True)
class Repository:
    """An opened mirror with the configured branch checked out."""
    path: Path
    branch: str
    head: Optional[str]

    @property
    def branch_ref(self) -> str:
        return f"refs/heads/{self.branch}"


class RepositoryManager:
    """Opens, clones and reconciles the local mirror."""

    def __init__(self, runner: GitRunner):
        self.runner = runner

    async def ensure_ready(self, config) -> Repository:
        """
        Make the mirror ready for a buffer operation.

        Args:
            config: SyncConfig

        Returns:
            Repository with HEAD on refs/heads/<branch>

        Raises:
            CloneFailedError: If the mirror is missing and cloning fails
            BranchNotFoundError: If the remote-tracking branch does not exist
            CheckoutFailedError: If the branch cannot be created or checked out
        """
        repo_path = Path(config.local_dir)

        if not await self.is_repository(repo_path):
            await self._clone(config, repo_path)

        target_ref = f"refs/heads/{config.branch}"
        current_ref = await self.symbolic_head(repo_path)

        if current_ref != target_ref:
            logger.info(f"Mirror HEAD is {current_ref or 'detached'}, switching to {target_ref}")
            await self._switch_branch(config, repo_path)

        head = await self.resolve_commit(repo_path, 'HEAD')
        if head is None:
            # Unborn branch, e.g. a clone of an empty remote
            raise BranchNotFoundError(
                f"Branch {config.branch} has no commits; create it on the remote first"
            )
        return Repository(path=repo_path, branch=config.branch, head=head)

    async def is_repository(self, repo_path: Path) -> bool:
        """
        Check that repo_path is the top level of a git working tree.

        A directory nested inside some other repository does not count.
        """
        if not repo_path.is_dir():
            return False

        result = await self.runner.run(['rev-parse', '--show-toplevel'], cwd=repo_path)
        if result.returncode != 0:
            return False
        return Path(result.stdout.strip()).resolve() == repo_path.resolve()

    async def symbolic_head(self, repo_path: Path) -> Optional[str]:
        """Symbolic name of HEAD, or None if HEAD is detached."""
        result = await self.runner.run(['symbolic-ref', '-q', 'HEAD'], cwd=repo_path)
        return result.stdout.strip() if result.returncode == 0 else None

    async def resolve_commit(self, repo_path: Path, rev: str) -> Optional[str]:
        """Full commit SHA for a revision, or None if it does not resolve."""
        result = await self.runner.run(
            ['rev-parse', '--verify', '-q', f'{rev}^{{commit}}'],
            cwd=repo_path
        )
        return result.stdout.strip() if result.returncode == 0 else None

    async def _clone(self, config, repo_path: Path) -> None:
        try:
            repo_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CloneFailedError(f"Cannot create mirror parent directory {repo_path.parent}: {e}")

        logger.info(f"Cloning mirror into {repo_path}")
        result = await self.runner.run(
            ['clone', '--origin', config.remote_name, '--', config.remote_url, str(repo_path)],
            cwd=repo_path.parent,
            timeout=CLONE_TIMEOUT
        )
        if result.returncode != 0:
            error = self.runner.error_text(result, "Clone failed")
            raise CloneFailedError(f"Clone failed: {error}")

        logger.info(f"Cloned mirror into {repo_path}")

    async def _switch_branch(self, config, repo_path: Path) -> None:
        branch = config.branch
        local_ref = f"refs/heads/{branch}"
        remote_ref = f"refs/remotes/{config.remote_name}/{branch}"

        remote_oid = await self.resolve_commit(repo_path, remote_ref)
        if remote_oid is None:
            raise BranchNotFoundError(
                f"Remote branch {config.remote_name}/{branch} not found; create it on the remote first"
            )

        local_oid = await self.resolve_commit(repo_path, local_ref)

        if local_oid is None:
            await self._update_ref(repo_path, local_ref, remote_oid)
            logger.info(f"Created branch {branch} at {remote_oid[:12]}")
        elif local_oid != remote_oid:
            if await self._is_ancestor(repo_path, local_oid, remote_oid):
                await self._update_ref(repo_path, local_ref, remote_oid, old=local_oid)
                logger.info(f"Fast-forwarded branch {branch}: {local_oid[:12]} -> {remote_oid[:12]}")
            elif await self._is_ancestor(repo_path, remote_oid, local_oid):
                logger.info(f"Branch {branch} is ahead of {remote_ref}, keeping local commits")
            else:
                raise CheckoutFailedError(
                    f"Branch {branch} has diverged from {remote_ref}; resolve manually"
                )

        result = await self.runner.run(['checkout', branch, '--'], cwd=repo_path)
        if result.returncode != 0:
            error = self.runner.error_text(result, "Checkout failed")
            raise CheckoutFailedError(f"Checkout of {branch} failed: {error}")

        if await self.symbolic_head(repo_path) != local_ref:
            raise CheckoutFailedError(f"HEAD is not {local_ref} after checkout")

        logger.info(f"Checked out {branch} in {repo_path}")

    async def _update_ref(self, repo_path: Path, ref: str, new: str, old: Optional[str] = None) -> None:
        args = ['update-ref', '-m', 'simple-text: reconcile branch', ref, new]
        if old:
            args.append(old)
        result = await self.runner.run(args, cwd=repo_path)
        if result.returncode != 0:
            error = self.runner.error_text(result, "update-ref failed")
            raise CheckoutFailedError(f"Cannot update {ref}: {error}")

    async def _is_ancestor(self, repo_path: Path, ancestor: str, descendant: str) -> bool:
        result = await self.runner.run(
            ['merge-base', '--is-ancestor', ancestor, descendant],
            cwd=repo_path
        )
        if result.returncode in (0, 1):
            return result.returncode == 0
        error = self.runner.error_text(result, "merge-base failed")
        raise CheckoutFailedError(f"Cannot compare {ancestor[:12]} and {descendant[:12]}: {error}")
