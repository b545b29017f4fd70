"""
Pydantic models for simple-text settings and API endpoints.

Follows the backend's model patterns:
- A frozen settings model validated on every load
- Request models for validation
- Response models built from engine results

Security:
    - Remote URLs restricted to SSH and local forms, shell metacharacters rejected
    - Branch names validated against git ref rules
    - Buffer directory must stay inside the mirror (relative, no '..')
"""

import os
import re
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Shared Validation Helpers
# =============================================================================

_VALID_URL_PREFIXES = ('git@', 'ssh://', 'file://', '/')
_DANGEROUS_URL_CHARS = (';', '|', '&', '$', '`', '\n', '\r')


def _validate_url(v: str) -> str:
    """Validate git remote URL (SSH, or a local path/file:// remote)."""
    v = v.strip()
    if not v:
        raise ValueError('Remote URL cannot be empty')
    if not any(v.startswith(prefix) for prefix in _VALID_URL_PREFIXES):
        raise ValueError('Remote URL must start with git@, ssh://, file:// or be an absolute path')
    if ' ' in v:
        raise ValueError('Remote URL cannot contain spaces')
    if any(c in v for c in _DANGEROUS_URL_CHARS):
        raise ValueError('Remote URL contains invalid characters')
    return v


def _validate_branch(v: str) -> str:
    """Validate git branch name."""
    v = v.strip()
    if not v:
        raise ValueError('Branch name cannot be empty')
    if v.startswith('-') or v.startswith('.'):
        raise ValueError('Branch name cannot start with - or .')
    if '..' in v:
        raise ValueError('Branch name cannot contain ..')
    if v.endswith('.lock'):
        raise ValueError('Branch name cannot end with .lock')
    if not re.match(r'^[a-zA-Z0-9/_.-]+$', v):
        raise ValueError('Branch name contains invalid characters')
    return v


# =============================================================================
# Settings
# =============================================================================


class SyncConfig(BaseModel):
    """
    Settings for one pipeline run.

    Read from the YAML or TOML settings file before every run and never
    mutated.
    `url` and `ssh_file` are accepted as alternative key names.
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    remote_url: str = Field(..., validation_alias=AliasChoices('remote_url', 'url'))
    local_dir: str
    branch: str
    buffer_dir_rel: str
    ssh_key_path: str = Field(..., validation_alias=AliasChoices('ssh_key_path', 'ssh_file'))

    remote_name: str = Field(default='origin', pattern=r'^[a-zA-Z0-9_.-]+$')
    crypto_backend: str = Field(default='command', pattern='^(command|fernet)$')
    encrypt_command: str = Field(default='scramble', min_length=1)
    decrypt_command: str = Field(default='unscramble', min_length=1)
    crypto_timeout: Optional[float] = Field(default=None, gt=0)
    fernet_key_path: Optional[str] = None

    @field_validator('remote_url')
    @classmethod
    def validate_remote_url(cls, v: str) -> str:
        return _validate_url(v)

    @field_validator('local_dir')
    @classmethod
    def validate_local_dir(cls, v: str) -> str:
        v = v.strip()
        if not os.path.isabs(v):
            raise ValueError('local_dir must be an absolute path')
        return os.path.normpath(v)

    @field_validator('branch')
    @classmethod
    def validate_branch(cls, v: str) -> str:
        return _validate_branch(v)

    @field_validator('buffer_dir_rel')
    @classmethod
    def validate_buffer_dir(cls, v: str) -> str:
        v = v.strip()
        if os.path.isabs(v):
            raise ValueError('buffer_dir_rel must be relative to the mirror root')
        if '..' in v.replace('\\', '/').split('/'):
            raise ValueError('buffer_dir_rel cannot contain ..')
        return v

    @field_validator('ssh_key_path')
    @classmethod
    def validate_ssh_key_path(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('ssh_key_path cannot be empty')
        return os.path.expanduser(v)


# =============================================================================
# API Models
# =============================================================================


class BufferSyncRequest(BaseModel):
    """Request model for appending text to a buffer."""
    buffer: str = Field(..., min_length=1, max_length=100)
    text: str = Field(..., max_length=100000)

    @field_validator('buffer')
    @classmethod
    def validate_buffer(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Buffer name cannot be empty')
        return v


class BufferSyncResponse(BaseModel):
    """Response model for a successful buffer sync."""
    success: bool
    buffer: str
    path: Optional[str] = None
    commit: Optional[str] = None
    stage: str

    @classmethod
    def from_result(cls, result) -> 'BufferSyncResponse':
        """Create response from a SyncResult."""
        return cls(
            success=result.success,
            buffer=result.buffer,
            path=result.path,
            commit=result.commit,
            stage=result.stage.value,
        )


class PushRetryResponse(BaseModel):
    """Response model for a push retry."""
    success: bool
    commit: Optional[str] = None
