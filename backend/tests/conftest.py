"""
Shared pytest fixtures for simple-text tests.

Fixtures provided:
- fixed_now: Frozen clock value used for buffer names and commit messages
- rot13_bin: Directory with `scramble`/`unscramble` executables (rot13, in place)
- failing_bin: Directory with transform executables that always fail
- git_identity: Author/committer identity for git via environment
- remote_repo: Bare "remote" repository with `main` and `notes` branches
- make_config: Factory for SyncConfig pointing at the remote_repo

Tests touching real repositories are skipped when the git binary is missing.
"""

import os
import shutil
import stat
from pathlib import Path

import pytest

from helpers import FIXED_NOW, git
from models.sync_models import SyncConfig


ROT13_SCRIPT = """#!/bin/sh
tr 'A-Za-z' 'N-ZA-Mn-za-m' < "$1" > "$1.tmp" && mv "$1.tmp" "$1"
"""

FAILING_SCRIPT = """#!/bin/sh
echo "transform unavailable" >&2
exit 3
"""


def _write_executable(path: Path, content: str) -> Path:
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def rot13_bin(tmp_path):
    """Executables named like the default transforms, implementing rot13."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    _write_executable(bin_dir / "scramble", ROT13_SCRIPT)
    _write_executable(bin_dir / "unscramble", ROT13_SCRIPT)
    return bin_dir


@pytest.fixture
def failing_bin(tmp_path):
    """Transform executables that exit non-zero."""
    bin_dir = tmp_path / "failing-bin"
    bin_dir.mkdir()
    _write_executable(bin_dir / "scramble", FAILING_SCRIPT)
    _write_executable(bin_dir / "unscramble", FAILING_SCRIPT)
    return bin_dir


@pytest.fixture
def git_identity(tmp_path, monkeypatch):
    """Deterministic git identity, isolated from the user's global config."""
    empty_config = tmp_path / "gitconfig"
    empty_config.write_text("")
    monkeypatch.setenv('GIT_CONFIG_GLOBAL', str(empty_config))
    monkeypatch.setenv('GIT_CONFIG_NOSYSTEM', '1')
    monkeypatch.setenv('GIT_AUTHOR_NAME', 'Note Taker')
    monkeypatch.setenv('GIT_AUTHOR_EMAIL', 'notes@example.com')
    monkeypatch.setenv('GIT_COMMITTER_NAME', 'Note Taker')
    monkeypatch.setenv('GIT_COMMITTER_EMAIL', 'notes@example.com')


@pytest.fixture
def remote_repo(tmp_path, git_identity):
    """
    Bare repository standing in for the SSH remote.

    HEAD points at `main`; the `notes` branch carries one extra commit.
    Returns the bare repository path.
    """
    if shutil.which('git') is None:
        pytest.skip("git binary not available")

    bare = tmp_path / "remote.git"
    git('init', '--bare', str(bare), cwd=tmp_path)
    git('symbolic-ref', 'HEAD', 'refs/heads/main', cwd=bare)

    seed = tmp_path / "seed"
    git('init', str(seed), cwd=tmp_path)
    git('symbolic-ref', 'HEAD', 'refs/heads/main', cwd=seed)
    (seed / "README").write_text("notes mirror\n")
    git('add', 'README', cwd=seed)
    git('commit', '-m', 'initial', cwd=seed)
    git('push', str(bare), 'main', cwd=seed)

    git('checkout', '-b', 'notes', cwd=seed)
    (seed / "text").mkdir()
    (seed / "text" / ".keep").write_text("")
    git('add', 'text/.keep', cwd=seed)
    git('commit', '-m', 'buffer directory', cwd=seed)
    git('push', str(bare), 'notes', cwd=seed)

    return bare


@pytest.fixture
def make_config(tmp_path, remote_repo):
    """Build a SyncConfig for a mirror of remote_repo under tmp_path."""
    def _make(**overrides) -> SyncConfig:
        values = {
            'remote_url': str(remote_repo),
            'local_dir': str(tmp_path / "mirror"),
            'branch': 'notes',
            'buffer_dir_rel': 'text/buffer',
            'ssh_key_path': str(tmp_path / "id_ed25519"),
        }
        values.update(overrides)
        return SyncConfig(**values)
    return _make


@pytest.fixture
def path_with(monkeypatch):
    """Prepend a directory to PATH for the duration of a test."""
    def _prepend(directory: Path) -> None:
        monkeypatch.setenv('PATH', f"{directory}{os.pathsep}{os.environ.get('PATH', '')}")
    return _prepend
