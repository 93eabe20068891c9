"""
Static file server.

FileServer owns one Flask application. Every request, whatever its path
or method, lands in FileServer.handle(), which walks this state machine:

    method != GET             -> 405
    outside the base URL      -> 404
    stat(abs) fails           -> 404 (missing) / 500 (anything else)
    regular file              -> 200, streamed
    directory, serve_dirs     -> 200, generated listing
    directory, no serve_dirs  -> 400
    anything else             -> 400

Status responses are plain text "<code> : <message>". Every response
starts from the configured default headers.
"""

import os
import stat
from threading import Lock
from typing import Optional
from urllib.parse import quote, urlsplit

from flask import Flask, Response, g, request
from flask_cors import CORS
from werkzeug.datastructures import Headers
from werkzeug.exceptions import HTTPException, MethodNotAllowed
from werkzeug.routing import BaseConverter
from werkzeug.serving import BaseWSGIServer, make_server

from dirserve.config import Config
from dirserve.errors import (
    ConfigError,
    FilesystemError,
    HTTPError,
    MethodNotAllowedError,
    NotFoundError,
    UnsupportedItemError,
)
from dirserve.listing import render_listing, scan_directory
from dirserve.logs import close_logging, configure_logging
from dirserve.mimes import content_type_for
from dirserve.resolver import ResolvedPath, resolve, strip_query, within_base
from dirserve.streaming import iter_file, open_file

ALL_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS', 'TRACE', 'CONNECT']


class RequestCounter:
    """
    Sequential request ids.
    Mutable and thread safe: next() hands out 0, 1, 2, ... exactly once each.
    """

    def __init__(self, start: int = 0):
        self._value = start
        self._lock = Lock()

    def next(self) -> int:
        with self._lock:
            value = self._value
            self._value += 1
            return value


class EverythingConverter(BaseConverter):
    """Matches any remainder of the path, empty and slash-led included."""
    regex = '.*'
    part_isolating = False


def request_uri() -> str:
    """The request target as sent by the client, before any decoding."""
    uri = request.environ.get('RAW_URI') or request.environ.get('REQUEST_URI')
    if not uri:
        uri = quote(request.script_root + request.path)
        if request.query_string:
            uri += '?' + request.query_string.decode('latin-1')
        return uri
    try:
        # WSGI strings carry the raw bytes as latin-1
        uri = uri.encode('latin-1').decode('utf-8')
    except UnicodeError:
        pass
    if not uri.startswith('/'):
        # absolute-form target, e.g. from a proxy
        parts = urlsplit(uri)
        uri = parts.path or '/'
        if parts.query:
            uri += '?' + parts.query
    return uri


class FileServer:
    """HTTP static file server for one configured root."""

    def __init__(self, config: Config):
        """
        Make a new server for config. Nothing listens until start().

        :param config: validated configuration
        :raises ConfigError: if the root is not an existing directory or the
            log file cannot be opened
        """
        self.config = config
        self.logger = configure_logging(config)
        self.logger.debug(f'config: {config}')

        if not os.path.isdir(config.root):
            close_logging(self.logger)
            if not os.path.exists(config.root):
                raise ConfigError(f'no such directory: {config.root}')
            raise ConfigError(f'not a directory: {config.root}')

        self.counter = RequestCounter()
        self._server: Optional[BaseWSGIServer] = None

        self.app = Flask(__name__)
        self.app.url_map.merge_slashes = False
        self.app.url_map.strict_slashes = False
        self.app.url_map.converters['everything'] = EverythingConverter

        if config.cors:
            CORS(self.app)

        @self.app.before_request
        def assign_request_id():
            g.request_id = f'{self.counter.next():03d}'
            self.logger.info(f'REQ #{g.request_id} {request.method} {request_uri()}')

        @self.app.route('/', methods=ALL_METHODS)
        @self.app.route('/<everything:path>', methods=ALL_METHODS)
        def route_any(path=''):
            return self.handle()

        @self.app.errorhandler(HTTPError)
        def on_http_error(e: HTTPError):
            response = self.send_status(e.status, e.message)
            if isinstance(e, MethodNotAllowedError):
                response.headers['allow'] = 'GET'
            return response

        @self.app.errorhandler(HTTPException)
        def on_routing_error(e: HTTPException):
            if isinstance(e, MethodNotAllowed):
                # method token the router does not know
                return on_http_error(MethodNotAllowedError(request.method))
            return self.send_status(e.code or 500, (e.name or 'error').lower())

        @self.app.errorhandler(Exception)
        def on_unexpected_error(e: Exception):
            self.logger.exception(f'RES #{g.get("request_id", "---")} unexpected error')
            return self.send_status(500, str(e) or type(e).__name__)

    def headers(self, content_type: str) -> Headers:
        """Configured default headers plus the content type."""
        headers = Headers(list(self.config.headers.items()))
        headers.set('content-type', content_type)
        return headers

    def handle(self) -> Response:
        """Answer the current request, raising HTTPError for status responses."""
        url = request_uri()

        if request.method != 'GET':
            raise MethodNotAllowedError(request.method)

        # prefix test on the URL as sent; decoding is only for resolution
        if not within_base(strip_query(url), self.config.base_url):
            raise NotFoundError()

        resolved = resolve(url, self.config)
        self.logger.debug(f'url: {url} rel: {resolved.rel} abs: {resolved.abs}')

        try:
            st = os.stat(resolved.abs)
        except (FileNotFoundError, NotADirectoryError, ValueError):
            raise NotFoundError()
        except OSError as e:
            raise FilesystemError(str(e))

        if stat.S_ISREG(st.st_mode):
            return self.send_file(resolved)
        if stat.S_ISDIR(st.st_mode):
            if not self.config.serve_dirs:
                raise UnsupportedItemError('the server is not configured to serve directories')
            return self.send_dir(resolved)
        raise UnsupportedItemError('the requested item is not a file or directory')

    def send_status(self, code: int, message: str) -> Response:
        self.logger.info(f'RES #{g.get("request_id", "---")} [status] {code} {message}')
        return Response(f'{code} : {message}', status=code, headers=self.headers('text/plain'))

    def send_file(self, resolved: ResolvedPath) -> Response:
        """Stream a regular file. Read errors after this point only cut the body short."""
        request_id = g.request_id
        content_type = content_type_for(resolved.abs, self.config.mimes)

        try:
            handle = open_file(resolved.abs)
        except OSError as e:
            raise FilesystemError(str(e))

        finished = []

        def done(error: Optional[OSError]) -> None:
            finished.append(error)
            if error is None:
                self.logger.info(f'RES #{request_id} [file] OK')
            else:
                self.logger.info(f'RES #{request_id} [file] error: {error}')

        response = Response(iter_file(handle, on_done=done), status=200,
                            headers=self.headers(content_type))

        @response.call_on_close
        def closed() -> None:
            # generator may never start if the client goes away first
            handle.close()
            if not finished:
                done(ConnectionAbortedError('transfer aborted before the first chunk'))

        return response

    def send_dir(self, resolved: ResolvedPath) -> Response:
        try:
            entries = scan_directory(resolved.abs)
        except OSError as e:
            raise FilesystemError(str(e))

        body = render_listing(self.config, resolved.rel, entries)
        self.logger.info(f'RES #{g.request_id} [dir] OK')
        return Response(body, status=200, headers=self.headers('text/html'))

    def listen(self) -> BaseWSGIServer:
        """Bind the listening socket. Called by start() if not done already."""
        if self._server is None:
            self._server = make_server(self.config.host, self.config.port, self.app, threaded=True)
        return self._server

    def start(self) -> None:
        """Serve requests until stop() is called from another thread."""
        server = self.listen()
        self.logger.info(f'dir: {self.config.root}')
        self.logger.info(f'url: {self.config.public_url}')
        server.serve_forever()

    def stop(self) -> None:
        """Stop this server. Once stopped, this server cannot be restarted."""
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
        self.logger.info('server stopped')
        close_logging(self.logger)
