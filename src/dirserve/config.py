"""
Server configuration.

Config is immutable once built. Config.from_options() is the only way
options coming from files or the command line get in: it rejects unknown
names and values whose type differs from the default's, then the
dataclass validates ranges and normalises paths.
"""

import os
import re
from dataclasses import dataclass, field, fields, MISSING
from types import MappingProxyType
from typing import Any, Dict, Mapping

from dirserve.errors import ConfigError

DEFAULT_HEADERS = {'cache-control': 'public, max-age=604800, immutable'}


def _normalize_path(path: str) -> str:
    path = os.path.abspath(path)
    if os.name == 'nt':
        path = path.replace('\\', '/')
    return path


def normalize_base_url(base_url: str) -> str:
    """Collapse repeated slashes and strip the leading and trailing one."""
    return re.sub(r'/{2,}', '/', base_url).strip('/')


@dataclass(frozen=True)
class Config:
    root: str = '.'
    host: str = '0.0.0.0'
    port: int = 1234
    base_url: str = '/'
    autoindex: bool = False
    serve_dirs: bool = True
    headers: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    mimes: Mapping[str, str] = field(default_factory=dict)
    logfile: str = ''
    verbose: bool = True
    debug: bool = False
    cors: bool = False

    def __post_init__(self):
        if not self.root:
            raise ConfigError("config.root can't be an empty string")
        self._set('root', _normalize_path(self.root))

        if self.logfile:
            self._set('logfile', _normalize_path(self.logfile))

        if type(self.port) is not int or not 1 <= self.port <= 65535:
            raise ConfigError(f'invalid port specified: {self.port}')

        self._set('base_url', normalize_base_url(self.base_url))

        if self.autoindex and self.serve_dirs:
            raise ConfigError('config.autoindex and config.serve_dirs are mutually exclusive')

        for name in ('headers', 'mimes'):
            for value in getattr(self, name).values():
                if not isinstance(value, str):
                    raise ConfigError(f'config.{name} values must be strings')

        mimes = {ext.lower().lstrip('.'): ctype for ext, ctype in self.mimes.items()}
        self._set('headers', MappingProxyType(dict(self.headers)))
        self._set('mimes', MappingProxyType(mimes))

    def _set(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        """Return the default value of every recognised option."""
        result = {}
        for f in fields(cls):
            result[f.name] = f.default_factory() if f.default is MISSING else f.default
        return result

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> 'Config':
        """
        Build a Config from a partial mapping of option name -> value.

        :raises ConfigError: on an unknown option, a value of the wrong type,
            or any value-level constraint violation
        """
        defaults = cls.defaults()
        for key, value in options.items():
            if key not in defaults:
                raise ConfigError(f'unrecognized option: {key}')
            expected = type(defaults[key])
            if type(value) is not expected:
                raise ConfigError(
                    f'config.{key} type error: expected {expected.__name__}, '
                    f'got {type(value).__name__}'
                )
        return cls(**options)

    @property
    def public_url(self) -> str:
        url = f'http://localhost:{self.port}'
        return f'{url}/{self.base_url}' if self.base_url else url
