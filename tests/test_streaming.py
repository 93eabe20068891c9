"""
Tests for content-type lookup and chunked file streaming.
"""

import io

import pytest

from dirserve.mimes import DEFAULT_TYPE, content_type_for
from dirserve.streaming import iter_file


class FlakyReader(io.BytesIO):
    """Returns one good chunk, then fails like a revoked or /proc-style file."""

    def __init__(self, data: bytes, fail_after: int):
        super().__init__(data)
        self.reads = 0
        self.fail_after = fail_after

    def read(self, size=-1):
        self.reads += 1
        if self.reads > self.fail_after:
            raise OSError(5, 'Input/output error')
        return super().read(size)


class TestContentType:

    @pytest.mark.parametrize('path, expected', [
        ('/srv/index.html', 'text/html'),
        ('/srv/app.js', 'text/javascript'),
        ('/srv/server.log', 'text/plain'),
        ('/srv/photo.JPG', 'image/jpeg'),
        ('/srv/archive.tar.zip', 'application/zip'),
    ])
    def test_builtin_table(self, path, expected):
        assert content_type_for(path) == expected

    @pytest.mark.parametrize('path', ['/srv/data.unknownext', '/srv/Makefile', '/srv/.bashrc'])
    def test_unmapped(self, path):
        assert content_type_for(path) == DEFAULT_TYPE == 'application/octet-stream'

    def test_override_wins(self):
        assert content_type_for('/srv/a.html', {'html': 'text/plain'}) == 'text/plain'

    def test_override_for_unmapped_extension(self):
        assert content_type_for('/srv/notes.md', {'md': 'text/markdown'}) == 'text/markdown'


class TestIterFile:

    def test_chunks(self):
        handle = io.BytesIO(b'abcdefghij')
        assert list(iter_file(handle, chunk_size=4)) == [b'abcd', b'efgh', b'ij']
        assert handle.closed

    def test_empty_file(self):
        handle = io.BytesIO(b'')
        results = []
        assert list(iter_file(handle, on_done=results.append)) == []
        assert results == [None]
        assert handle.closed

    def test_read_error_ends_quietly(self):
        handle = FlakyReader(b'x' * 10, fail_after=1)
        results = []
        chunks = list(iter_file(handle, chunk_size=4, on_done=results.append))
        assert chunks == [b'xxxx']
        assert len(results) == 1
        assert isinstance(results[0], OSError)
        assert handle.closed

    def test_closed_when_consumer_stops(self):
        handle = io.BytesIO(b'x' * 100)
        results = []
        stream = iter_file(handle, chunk_size=10, on_done=results.append)
        assert next(stream) == b'x' * 10
        stream.close()
        assert handle.closed
        assert len(results) == 1
        assert isinstance(results[0], ConnectionAbortedError)

    def test_large_file_bounded_chunks(self, tmp_path):
        path = tmp_path / 'big.bin'
        data = bytes(range(256)) * 4096
        path.write_bytes(data)
        with open(path, 'rb') as handle:
            chunks = list(iter_file(handle, chunk_size=64 * 1024))
        assert all(len(c) <= 64 * 1024 for c in chunks)
        assert b''.join(chunks) == data
