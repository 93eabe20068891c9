"""
Request URL -> filesystem path resolution.

    url "/files//docs/a%20b.txt", base_url "files", root "/srv"
        rel = "docs/a b.txt"
        abs = "/srv/docs/a b.txt"

No traversal hardening is done beyond joining: ".." segments are passed
through to the filesystem as-is.
"""

import os
import re
from typing import NamedTuple
from urllib.parse import unquote

from dirserve.config import Config

INDEX_FILE = 'index.html'

_BAD_ESCAPE = re.compile(r'%(?![0-9A-Fa-f]{2})')


class ResolvedPath(NamedTuple):
    rel: str
    abs: str
    substituted: bool = False


def percent_decode(url: str) -> str:
    """
    Decode %XX escapes as UTF-8.

    :raises ValueError: on a truncated or non-hex escape, or bytes that are
        not valid UTF-8
    """
    if _BAD_ESCAPE.search(url):
        raise ValueError(f'malformed percent escape in {url!r}')
    return unquote(url, errors='strict')


def decode_url(url: str) -> str:
    """Percent-decode url, falling back to the raw string when malformed."""
    try:
        return percent_decode(url)
    except ValueError:
        return url


def strip_query(url: str) -> str:
    return url.split('?', 1)[0]


def within_base(path: str, base_url: str) -> bool:
    """True if path is the base URL itself or lies below it."""
    if not base_url:
        return True
    prefix = '/' + base_url
    return path == prefix or path.startswith(prefix + '/')


def _strip_base(path: str, base_url: str) -> str:
    if base_url and within_base(path, base_url):
        return path[len(base_url) + 1:]
    return path


def relative_path(path: str, base_url: str) -> str:
    """Base URL removed, slashes collapsed, no leading or trailing slash."""
    path = _strip_base(path, base_url)
    return re.sub(r'/{2,}', '/', path).strip('/')


def absolute_path(root: str, rel: str) -> str:
    path = f'{root}/{rel}' if rel else root
    if path.startswith('//'):
        # root is "/"
        path = path[1:]
    return path


def resolve(url: str, config: Config) -> ResolvedPath:
    """
    Map a request URL onto the configured root.

    :param url: raw request URL (path part; any query string is dropped)
    :param config: server configuration
    :return: relative path, absolute path and whether index.html was substituted
    """
    path = decode_url(strip_query(url))
    rel = relative_path(path, config.base_url)
    abs_path = absolute_path(config.root, rel)

    if config.autoindex and has_index(abs_path):
        rel = f'{rel}/{INDEX_FILE}' if rel else INDEX_FILE
        abs_path = absolute_path(abs_path, INDEX_FILE)
        return ResolvedPath(rel, abs_path, True)

    return ResolvedPath(rel, abs_path)


def has_index(directory: str) -> bool:
    # isfile() swallows permission errors and reports False
    return os.path.isfile(absolute_path(directory, INDEX_FILE))
