"""
Tests for the local storage backend and signed download URLs.
"""
import os
import time

import jwt as pyjwt
import pytest

from minidrive.extensions import storage
from minidrive.utils.storage import LocalStorage, ObjectNotFound, StorageError


@pytest.fixture
def backend(tmp_path):
    return LocalStorage(root=str(tmp_path / 'objects'), secret='storage-test-secret', base_url='http://files.test/')


class TestLocalStorage:
    """Object operations on the filesystem backend."""

    def test_upload_and_download(self, backend):
        backend.upload('1/abc.txt', b'hello')
        assert backend.exists('1/abc.txt')
        assert backend.download('1/abc.txt') == b'hello'

    def test_upload_refuses_overwrite(self, backend):
        backend.upload('1/abc.txt', b'hello')
        with pytest.raises(StorageError):
            backend.upload('1/abc.txt', b'again')
        assert backend.download('1/abc.txt') == b'hello'

    def test_download_missing_object(self, backend):
        with pytest.raises(ObjectNotFound):
            backend.download('1/missing.txt')

    def test_remove_reports_missing(self, backend):
        backend.upload('1/a.txt', b'a')
        missing = backend.remove(['1/a.txt', '1/never.txt'])
        assert missing == ['1/never.txt']
        assert not backend.exists('1/a.txt')

    def test_list_paths(self, backend):
        backend.upload('2/b.bin', b'b')
        backend.upload('1/a.bin', b'a')
        assert backend.list_paths() == ['1/a.bin', '2/b.bin']

    def test_failed_upload_leaves_no_temp_file(self, backend, monkeypatch):
        def broken_replace(src, dst):
            raise OSError('disk full')
        monkeypatch.setattr('minidrive.utils.storage.os.replace', broken_replace)

        with pytest.raises(StorageError):
            backend.upload('1/a.bin', b'a')
        monkeypatch.undo()

        leftovers = [name for _dir, _dirs, names in os.walk(backend.root) for name in names]
        assert leftovers == []
        assert not backend.exists('1/a.bin')

    @pytest.mark.parametrize('path', ['../escape.txt', '1/../../escape.txt', '/etc/passwd', '', '.'])
    def test_rejects_paths_outside_root(self, backend, path):
        with pytest.raises(StorageError):
            backend.upload(path, b'x')


class TestSignedUrls:
    """Signed URLs are short-lived JWTs scoped to one object."""

    def test_signed_url_round_trip(self, backend):
        backend.upload('1/a.txt', b'a')
        url = backend.create_signed_url('1/a.txt', 60, download_name='a.txt')
        assert url.startswith('http://files.test/api/v1/storage/')

        token = url.rsplit('/', 1)[1]
        payload = backend.verify_signed_token(token)
        assert payload['path'] == '1/a.txt'
        assert payload['name'] == 'a.txt'

    def test_inline_flag_only_when_requested(self, backend):
        plain = backend.verify_signed_token(backend.create_signed_url('1/a.txt', 60).rsplit('/', 1)[1])
        assert 'inline' not in plain

        inline = backend.verify_signed_token(backend.create_signed_url('1/a.txt', 60, inline=True).rsplit('/', 1)[1])
        assert inline['inline'] is True

    def test_expired_token_rejected(self, backend):
        url = backend.create_signed_url('1/a.txt', 1)
        token = url.rsplit('/', 1)[1]
        time.sleep(2)
        assert backend.verify_signed_token(token) is None

    def test_foreign_token_rejected(self, backend):
        forged = pyjwt.encode({'type': 'storage_download', 'path': '1/a.txt'}, 'other-secret', algorithm='HS256')
        assert backend.verify_signed_token(forged) is None

    def test_access_token_is_not_a_download_token(self, backend):
        token = pyjwt.encode({'type': 'access', 'sub': '1'}, 'storage-test-secret', algorithm='HS256')
        assert backend.verify_signed_token(token) is None


class TestStorageManager:
    """The extension binds a backend to the app."""

    def test_initialised_from_config(self, app):
        assert storage.backend.root == app.config['STORAGE_ROOT']
        assert storage.backend.base_url == 'http://localhost'

    def test_proxies_backend_methods(self, app):
        storage.upload('9/x.txt', b'x')
        assert storage.exists('9/x.txt')
