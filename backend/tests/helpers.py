"""
Plain helpers shared by the test modules.

Kept out of conftest.py so tests can import them directly.
"""

import shutil
import subprocess
from datetime import datetime

import pytest


requires_git = pytest.mark.skipif(shutil.which('git') is None, reason="git binary not available")

FIXED_NOW = datetime(2024, 3, 7, 14, 5)


def git(*args, cwd) -> str:
    """Run a git command for test setup and return stripped stdout."""
    result = subprocess.run(
        ['git', *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True
    )
    return result.stdout.strip()


def rot13(text: str) -> str:
    out = []
    for ch in text:
        if 'a' <= ch <= 'z':
            out.append(chr((ord(ch) - ord('a') + 13) % 26 + ord('a')))
        elif 'A' <= ch <= 'Z':
            out.append(chr((ord(ch) - ord('A') + 13) % 26 + ord('A')))
        else:
            out.append(ch)
    return ''.join(out)
