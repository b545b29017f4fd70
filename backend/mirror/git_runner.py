"""
Git command runner for the local mirror.

Uses native git CLI commands via subprocess. Commands run in a worker thread
so the event loop is never blocked on network or slow storage.

Security:
    - SSH authentication uses the configured private key file directly
      (IdentitiesOnly, BatchMode: never prompts)
    - Error messages sanitized to remove usernames and the key path

SSH Host Key Verification:
    StrictHostKeyChecking=accept-new: the first connection records the host
    key, later connections reject a changed key. A mirror cloned on a fresh
    host therefore trusts the first key it sees.
"""
import asyncio
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from sync.errors import RepoError

logger = logging.getLogger(__name__)

__all__ = [
    'GitRunner',
    'GitNotAvailableError',
    'DEFAULT_TIMEOUT',
    'CLONE_TIMEOUT',
    'PUSH_TIMEOUT',
]

DEFAULT_TIMEOUT = 120
CLONE_TIMEOUT = 600  # 10 minutes for initial clone of large repos
PUSH_TIMEOUT = 300

TIMEOUT_RETURNCODE = 124
# Same code git uses for fatal errors
MISSING_CWD_RETURNCODE = 128


class GitNotAvailableError(RepoError):
    """Raised when git is not installed or not accessible."""
    pass


class GitRunner:
    """
    Runs git commands with SSH key authentication.

    One runner is built per pipeline run from the current settings.
    """

    def __init__(self, ssh_key_path: Optional[str] = None):
        self.ssh_key_path = ssh_key_path

    async def run(
        self,
        args: List[str],
        cwd: Path,
        timeout: int = DEFAULT_TIMEOUT
    ) -> subprocess.CompletedProcess:
        """
        Run git command asynchronously.

        A timeout is reported as a failed process (returncode 124) so
        callers handle every failure through the return code. A missing
        working directory is reported the same way (returncode 128).

        Args:
            args: Git command arguments (without 'git' prefix)
            cwd: Working directory
            timeout: Command timeout in seconds

        Returns:
            CompletedProcess with stdout, stderr, and returncode

        Raises:
            GitNotAvailableError: If the git executable cannot be found
        """
        # subprocess reports a missing cwd with the same FileNotFoundError
        # as a missing executable
        if not Path(cwd).is_dir():
            logger.error(f"git {args[0]} not run: working directory {cwd} does not exist")
            return subprocess.CompletedProcess(
                ['git'] + args,
                MISSING_CWD_RETURNCODE,
                stdout='',
                stderr=f"Working directory {cwd} does not exist"
            )

        try:
            return await asyncio.to_thread(
                subprocess.run,
                ['git'] + args,
                cwd=cwd,
                env=self.build_env(),
                capture_output=True,
                text=True,
                timeout=timeout
            )
        except FileNotFoundError:
            raise GitNotAvailableError("Git not found. Install git on the host running simple-text")
        except subprocess.TimeoutExpired:
            logger.error(f"git {args[0]} timed out after {timeout}s")
            return subprocess.CompletedProcess(
                ['git'] + args,
                TIMEOUT_RETURNCODE,
                stdout='',
                stderr=f"git {args[0]} timed out after {timeout}s"
            )

    def build_env(self) -> Dict[str, str]:
        """
        Build environment variables for git authentication.

        Returns:
            Full environment for the git subprocess
        """
        ssh_cmd = 'ssh -o BatchMode=yes -o StrictHostKeyChecking=accept-new'
        if self.ssh_key_path:
            ssh_cmd = f'ssh -i "{self.ssh_key_path}" -o IdentitiesOnly=yes -o BatchMode=yes -o StrictHostKeyChecking=accept-new'

        return {
            **os.environ,
            'GIT_TERMINAL_PROMPT': '0',  # Disable interactive prompts
            'GIT_SSH_COMMAND': ssh_cmd,
        }

    def error_text(self, result: subprocess.CompletedProcess, default: str) -> str:
        """Sanitized stderr of a failed command, or a default message."""
        if result.stderr and result.stderr.strip():
            return self.sanitize_error(result.stderr.strip())
        return default

    def sanitize_error(self, error: str) -> str:
        """
        Remove usernames and key paths from error messages.

        Git errors may contain:
        - SSH URLs with usernames (ssh://user@host, git@host:path)
        - The path of the private key file

        Args:
            error: Error message that may contain sensitive information

        Returns:
            Sanitized error message
        """
        result = error

        # Key path first so the URL patterns below can't split it
        if self.ssh_key_path:
            result = result.replace(self.ssh_key_path, '[SSH_KEY_FILE]')

        # ssh://user@host/path -> ssh://host/path
        ssh_url_pattern = r'(ssh://)([^@\s/]+)@([^\s]+)'
        result = re.sub(ssh_url_pattern, r'\1\3', result)

        # git@github.com:org/repo -> ***@github.com:org/repo
        git_at_pattern = r'([a-zA-Z0-9_-]+)@([a-zA-Z0-9.-]+):([^\s]+)'
        result = re.sub(git_at_pattern, r'***@\2:\3', result)

        return result
