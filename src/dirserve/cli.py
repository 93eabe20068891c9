"""
Command line entry point.

Options are layered, later sources win:
    ~/.config/dirserve, ./.dirserve, --config FILE, flags, positionals

Usage:
  dirserve [root] [port] [--base-url URL] [--autoindex | --no-serve-dirs] ...
  dirserve --init
"""

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

from dirserve.config import Config
from dirserve.errors import ConfigError
from dirserve.server import FileServer

CONFIG_FILENAME = '.dirserve'

TEMPLATE = {
    'root': '.',
    'port': 1234,
    'base_url': '/',
    'autoindex': False,
    'serve_dirs': True,
    'headers': {'cache-control': 'public, max-age=604800, immutable'},
    'mimes': {},
    'logfile': 'dirserve.log',
    'verbose': True,
    'debug': False,
}


def default_config_paths() -> List[str]:
    return [
        os.path.join(os.path.expanduser('~'), '.config', 'dirserve'),
        os.path.join(os.getcwd(), CONFIG_FILENAME),
    ]


def load_file(path: str) -> Dict[str, Any]:
    """Read one JSON options file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f'failed to read config file {path}: {e}') from e
    if not isinstance(data, dict):
        raise ConfigError(f'config file {path} must contain a JSON object')
    return data


def _pair(text: str) -> tuple:
    if '=' not in text:
        raise argparse.ArgumentTypeError(f'expected NAME=VALUE, got {text!r}')
    key, value = text.split('=', 1)
    return key.strip(), value.strip()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='dirserve', description='Serve a directory over HTTP',
                                argument_default=argparse.SUPPRESS)
    p.add_argument('root', nargs='?', help='directory to serve')
    p.add_argument('port', nargs='?', type=int, help='port to listen on')
    p.add_argument('--host', help='interface to bind (default 0.0.0.0)')
    p.add_argument('--base-url', dest='base_url', help='URL prefix the content is mounted under')
    p.add_argument('--autoindex', action=argparse.BooleanOptionalAction,
                   help='serve <dir>/index.html for directory requests')
    p.add_argument('--serve-dirs', dest='serve_dirs', action=argparse.BooleanOptionalAction,
                   help='render HTML listings for directories')
    p.add_argument('--header', dest='headers', action='append', type=_pair, metavar='NAME=VALUE',
                   help='response header sent with every response (repeatable)')
    p.add_argument('--mime', dest='mimes', action='append', type=_pair, metavar='EXT=TYPE',
                   help='content type override for an extension (repeatable)')
    p.add_argument('--logfile', help='append log lines to this file')
    p.add_argument('--quiet', dest='verbose', action='store_false', help='no console logging')
    p.add_argument('--debug', action='store_true', help='log debug details')
    p.add_argument('--cors', action='store_true', help='send CORS headers')
    p.add_argument('--config', dest='config_file', metavar='FILE', help='extra JSON options file')
    p.add_argument('--init', action='store_true',
                   help=f'write a {CONFIG_FILENAME} template here and exit')
    return p


def collect_options(args: argparse.Namespace,
                    config_paths: Optional[List[str]] = None) -> Dict[str, Any]:
    """Merge file options and parsed flags into one options mapping."""
    options: Dict[str, Any] = {}
    paths = default_config_paths() if config_paths is None else list(config_paths)
    explicit = getattr(args, 'config_file', None)
    if explicit:
        paths.append(explicit)

    for path in paths:
        if path == explicit or os.path.isfile(path):
            options.update(load_file(path))

    flags = vars(args).copy()
    flags.pop('config_file', None)
    flags.pop('init', None)
    for name in ('headers', 'mimes'):
        if name in flags:
            merged = dict(options.get(name, Config.defaults()[name]))
            merged.update(flags.pop(name))
            options[name] = merged
    options.update(flags)
    return options


def write_template(directory: str) -> str:
    path = os.path.join(directory, CONFIG_FILENAME)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(TEMPLATE, f, indent=4)
        f.write('\n')
    return path


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if getattr(args, 'init', False):
        path = write_template(os.getcwd())
        print(f'created {path} template config file')
        return 0

    try:
        config = Config.from_options(collect_options(args))
        server = FileServer(config)
    except ConfigError as e:
        print(f'error: {e}', file=sys.stderr)
        return 1

    try:
        server.start()
    except KeyboardInterrupt:
        print('\nShutting down.')
    return 0


if __name__ == '__main__':
    sys.exit(main())
