"""
Unit tests for settings and API model validation.
"""

import os

import pytest
from pydantic import ValidationError

from models.sync_models import BufferSyncRequest, BufferSyncResponse, SyncConfig
from sync.service import SyncResult, SyncStage


BASE = {
    'remote_url': 'git@github.com:me/mono.git',
    'local_dir': '/srv/mirror',
    'branch': 'notes',
    'buffer_dir_rel': 'text/buffer',
    'ssh_key_path': '/keys/id_ed25519',
}


def make(**overrides):
    values = dict(BASE)
    values.update(overrides)
    return SyncConfig(**values)


class TestSyncConfig:
    """Tests for SyncConfig validation"""

    def test_is_frozen(self):
        config = make()
        with pytest.raises(ValidationError):
            config.branch = 'other'

    @pytest.mark.parametrize('url', [
        'git@github.com:me/mono.git',
        'ssh://git@host.example:2222/mono.git',
        'file:///srv/remote.git',
        '/srv/remote.git',
    ])
    def test_accepted_remote_urls(self, url):
        assert make(remote_url=url).remote_url == url

    @pytest.mark.parametrize('url', [
        'https://github.com/me/mono.git',
        'git@github.com:me/mono.git; rm -rf /',
        'git@github.com:me/$(whoami).git',
        '',
    ])
    def test_rejected_remote_urls(self, url):
        with pytest.raises(ValidationError):
            make(remote_url=url)

    def test_local_dir_must_be_absolute(self):
        with pytest.raises(ValidationError, match="absolute"):
            make(local_dir='relative/mirror')

    def test_local_dir_is_normalized(self):
        assert make(local_dir='/srv/mirror/../mirror/').local_dir == '/srv/mirror'

    @pytest.mark.parametrize('branch', ['-f', '.hidden', 'a..b', 'notes.lock', 'has space', ''])
    def test_rejected_branches(self, branch):
        with pytest.raises(ValidationError):
            make(branch=branch)

    def test_nested_branch_name_is_accepted(self):
        assert make(branch='feature/notes').branch == 'feature/notes'

    @pytest.mark.parametrize('buffer_dir', ['/abs/path', '../outside', 'text/../../outside'])
    def test_buffer_dir_must_stay_inside_mirror(self, buffer_dir):
        with pytest.raises(ValidationError):
            make(buffer_dir_rel=buffer_dir)

    def test_ssh_key_path_expands_home(self):
        config = make(ssh_key_path='~/.ssh/id_ed25519')
        assert config.ssh_key_path == os.path.expanduser('~/.ssh/id_ed25519')

    def test_crypto_backend_is_restricted(self):
        assert make(crypto_backend='fernet').crypto_backend == 'fernet'
        with pytest.raises(ValidationError):
            make(crypto_backend='rot13')

    def test_crypto_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            make(crypto_timeout=0)


class TestBufferSyncRequest:
    """Tests for BufferSyncRequest validation"""

    def test_strips_buffer_name(self):
        assert BufferSyncRequest(buffer='  places ', text='x').buffer == 'places'

    def test_blank_buffer_name_rejected(self):
        with pytest.raises(ValidationError):
            BufferSyncRequest(buffer='   ', text='x')

    def test_empty_text_is_accepted(self):
        assert BufferSyncRequest(buffer='places', text='').text == ''

    def test_oversized_text_rejected(self):
        with pytest.raises(ValidationError):
            BufferSyncRequest(buffer='places', text='x' * 100001)

    def test_text_is_kept_verbatim(self):
        text = "  line one\n\tline two  "
        assert BufferSyncRequest(buffer='todo', text=text).text == text


class TestBufferSyncResponse:
    """Tests for BufferSyncResponse.from_result"""

    def test_from_result(self):
        result = SyncResult(
            success=True,
            stage=SyncStage.PUSHED,
            buffer='places',
            path='text/buffer/places.txt',
            commit='abc123',
        )
        response = BufferSyncResponse.from_result(result)

        assert response.success is True
        assert response.stage == 'pushed'
        assert response.path == 'text/buffer/places.txt'
        assert response.commit == 'abc123'
