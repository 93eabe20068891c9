"""Local static-file HTTP server with generated directory listings."""

from dirserve.config import Config
from dirserve.errors import ConfigError
from dirserve.server import FileServer

__version__ = '1.0.0'

__all__ = ['Config', 'ConfigError', 'FileServer', '__version__']
