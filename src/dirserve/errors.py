"""
Exceptions raised while configuring the server and answering requests.

Every request-level error carries the HTTP status it maps to, so the
dispatcher can raise and a single Flask error handler can respond.
"""


class ConfigError(ValueError):
    """Invalid or contradictory configuration. Fatal at startup."""


class HTTPError(Exception):
    """
    A request that ends in a plain-text status response.

    :param message: human readable reason, sent as "<status> : <message>"
    """

    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(HTTPError):
    status = 404

    def __init__(self, message: str = 'not found'):
        super().__init__(message)


class UnsupportedItemError(HTTPError):
    status = 400


class MethodNotAllowedError(HTTPError):
    status = 405

    def __init__(self, method: str):
        super().__init__(f'method not allowed: {method}')
        self.method = method


class FilesystemError(HTTPError):
    """stat/open failure other than a missing path."""
    status = 500


class DirectoryListingPartialError(OSError):
    """A child directory could not be enumerated while building a listing."""
