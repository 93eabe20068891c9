"""Chunked file streaming for 200 responses."""

import logging
from typing import BinaryIO, Callable, Iterator, Optional

logger = logging.getLogger('dirserve')

CHUNK_SIZE = 64 * 1024


def open_file(path: str) -> BinaryIO:
    """Open path for streaming. Errors propagate to the caller."""
    return open(path, 'rb')


def iter_file(handle: BinaryIO, chunk_size: int = CHUNK_SIZE,
              on_done: Optional[Callable[[Optional[OSError]], None]] = None) -> Iterator[bytes]:
    """
    Yield the contents of handle in chunks, closing it on every exit path.

    A read error ends the iteration quietly: headers are already on the
    wire, so the client just gets a short body. on_done is called once with
    the error, or None when the whole file was sent. If the consumer closes
    the stream early, on_done gets a ConnectionAbortedError.

    :param handle: file opened in binary mode
    :param chunk_size: bytes per read
    :param on_done: completion callback
    """
    error = None
    reported = False
    try:
        while True:
            try:
                chunk = handle.read(chunk_size)
            except OSError as e:
                error = e
                logger.debug('read failed', exc_info=True)
                break
            if not chunk:
                break
            yield chunk
        reported = True
        if on_done is not None:
            on_done(error)
    finally:
        handle.close()
        if not reported and on_done is not None:
            on_done(ConnectionAbortedError('transfer aborted before the end of the file'))
