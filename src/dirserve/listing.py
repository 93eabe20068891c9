"""
Directory listing: scan a directory and render it as an HTML page.

Entries are grouped directories, files, then everything else (sockets,
devices, symlinks). Symlinks are not followed.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import quote

from flask import render_template

from dirserve.config import Config
from dirserve.errors import DirectoryListingPartialError

FILE = 'file'
DIR = 'dir'
OTHER = 'other'

UNAVAILABLE = 'N/A'


@dataclass
class DirectoryEntry:
    """
    One child of a listed directory.

    size is the byte size for files, the child count for directories
    (None when the directory could not be read) and None for other entries.
    """
    kind: str
    name: str
    size: Optional[int] = None
    ctime: Optional[float] = None

    @property
    def readable(self) -> bool:
        return self.kind != DIR or self.size is not None


def count_children(path: str) -> int:
    try:
        with os.scandir(path) as it:
            return sum(1 for _ in it)
    except OSError as e:
        raise DirectoryListingPartialError(e.errno, e.strerror, path) from e


def _classify(entry: os.DirEntry) -> DirectoryEntry:
    try:
        is_file = entry.is_file(follow_symlinks=False)
        is_dir = entry.is_dir(follow_symlinks=False)
        if not (is_file or is_dir):
            return DirectoryEntry(OTHER, entry.name)
        stat = entry.stat(follow_symlinks=False)
    except OSError:
        # vanished or unreadable between listing and stat
        return DirectoryEntry(OTHER, entry.name)

    if is_file:
        return DirectoryEntry(FILE, entry.name, stat.st_size, stat.st_ctime)

    try:
        size = count_children(entry.path)
    except DirectoryListingPartialError:
        size = None
    return DirectoryEntry(DIR, entry.name, size, stat.st_ctime)


def scan_directory(path: str) -> List[DirectoryEntry]:
    """
    List the immediate children of path.

    :param path: absolute path of a directory
    :return: directories, then files, then other entries, each sorted by name
    :raises OSError: if path itself cannot be read
    """
    groups = {DIR: [], FILE: [], OTHER: []}
    with os.scandir(path) as it:
        for entry in it:
            item = _classify(entry)
            groups[item.kind].append(item)
    result = []
    for kind in (DIR, FILE, OTHER):
        result.extend(sorted(groups[kind], key=lambda e: e.name))
    return result


def format_bytes(size: int) -> str:
    """
    Binary units with two decimals above 1024.

    >>> format_bytes(512), format_bytes(2048)
    ('512 B', '2.00 K')
    """
    if size < 1024:
        return f'{size} B'
    if size < 1024 ** 2:
        return f'{size / 1024:.2f} K'
    if size < 1024 ** 3:
        return f'{size / 1024 ** 2:.2f} M'
    return f'{size / 1024 ** 3:.2f} G'


def format_timestamp(ts: float) -> str:
    """Local time as "YYYY-MM-DD HH:MM:SS (+HH:MM)"."""
    d = datetime.fromtimestamp(ts).astimezone()
    offset = d.utcoffset().total_seconds()
    sign = '-' if offset < 0 else '+'
    hours, minutes = divmod(int(abs(offset)) // 60, 60)
    return f"{d.strftime('%Y-%m-%d %H:%M:%S')} ({sign}{hours:02d}:{minutes:02d})"


def display_name(name: str) -> str:
    """name as text for the page. Bytes that are not UTF-8 show as U+FFFD."""
    return os.fsencode(name).decode('utf-8', 'replace')


def link(base_url: str, rel: str = '') -> str:
    """Root-relative href for rel under the base URL, percent-encoded."""
    path = '/'.join(p for p in (base_url, rel) if p)
    # encode the filesystem bytes so undecodable names keep their escapes
    return '/' + quote(os.fsencode(path))


def parent_link(base_url: str, rel: str) -> str:
    parent = rel.rsplit('/', 1)[0] if '/' in rel else ''
    return link(base_url, parent)


def breadcrumbs(config: Config, rel: str) -> List[Tuple[str, str]]:
    """(href, label) pairs: the root, then one per path segment."""
    crumbs = [(link(config.base_url), display_name(config.root))]
    if not rel:
        return crumbs
    segments = rel.split('/')
    for i, segment in enumerate(segments):
        href = link(config.base_url, '/'.join(segments[:i + 1]))
        label = segment if config.root == '/' and i == 0 else '/' + segment
        crumbs.append((href, display_name(label)))
    return crumbs


def render_listing(config: Config, rel: str, entries: List[DirectoryEntry]) -> str:
    """
    Render the listing page. Needs a Flask application context.

    :param config: server configuration (base URL and root label)
    :param rel: relative path of the listed directory, '' for the root
    :param entries: children as returned by scan_directory()
    """
    rows = []
    for entry in entries:
        href = link(config.base_url, f'{rel}/{entry.name}' if rel else entry.name)
        if entry.kind == FILE:
            size = format_bytes(entry.size)
        elif entry.kind == DIR:
            size = str(entry.size) if entry.readable else UNAVAILABLE
        else:
            size = ''
        rows.append({
            'kind': entry.kind,
            'name': display_name(entry.name),
            'href': href if entry.readable else None,
            'size': size,
            'time': format_timestamp(entry.ctime) if entry.ctime is not None else '',
        })

    return render_template(
        'listing.html',
        title=display_name(rel) or '/',
        crumbs=breadcrumbs(config, rel),
        parent=parent_link(config.base_url, rel) if rel else None,
        rows=rows,
    )
