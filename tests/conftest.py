"""Shared fixtures: a small served tree and server factories."""

import os
import sys

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from dirserve.config import Config
from dirserve.server import FileServer


@pytest.fixture
def tree(tmp_path):
    """
    root/
      hello.txt          "hello world"
      empty.txt          0 bytes
      data.unknownext
      a b.txt
      docs/readme.md
      docs/sub/x.txt
      site/index.html
    """
    root = tmp_path / 'root'
    root.mkdir()
    (root / 'hello.txt').write_text('hello world')
    (root / 'empty.txt').write_bytes(b'')
    (root / 'data.unknownext').write_bytes(b'\x00\x01\x02')
    (root / 'a b.txt').write_text('spaced')
    (root / 'docs').mkdir()
    (root / 'docs' / 'readme.md').write_text('# readme')
    (root / 'docs' / 'sub').mkdir()
    (root / 'docs' / 'sub' / 'x.txt').write_text('x')
    (root / 'site').mkdir()
    (root / 'site' / 'index.html').write_text('<h1>site</h1>')
    return root


@pytest.fixture
def make_server(tree):
    """Factory: FileServer over the tree with extra options."""
    def _make(**options):
        options.setdefault('root', str(tree))
        options.setdefault('verbose', False)
        return FileServer(Config.from_options(options))
    return _make


@pytest.fixture
def make_client(make_server):
    """Factory: Flask test client for a FileServer built with extra options."""
    def _make(**options):
        server = make_server(**options)
        server.app.testing = True
        return server.app.test_client()
    return _make
