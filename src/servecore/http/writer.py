"""
=============================================================================
RESPONSE WRITER
=============================================================================

The capability a handler writes its response through.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     RESPONSE WRITER STATES                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   OPEN ──write_header()/write()──► WRITING ──finish()──► COMMITTED  │
    │     │                                 │                              │
    │     │ ◄─────────── reset() ───────────┘                              │
    │     │                                                                │
    │     └──────────── close() ──────────────────────────► CLOSED        │
    │                                                                      │
    │   - headers may change until the status is written                  │
    │   - the first write() implies status 200                            │
    │   - writes only append                                               │
    │   - CLOSED: every write raises WriteError                           │
    │   - COMMITTED: reset() raises WriteError (bytes already left)       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A writer belongs to exactly one request. Handlers must not keep it after
their ``handle`` call returns.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Union
import logging
import threading

from ..errors import WriteError
from .response import HTTPResponse
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class ResponseWriter(ABC):
    """
    Abstract response writer.

    Subclasses implement ``_emit`` (where body bytes go) and may override
    ``_on_reset``. The state machine in the module docstring lives here.
    """

    def __init__(self):
        self.headers: Dict[str, str] = {}
        self._status: Optional[int] = None
        self._written = 0
        self._closed = False
        self._committed = False

    @property
    def status(self) -> Optional[int]:
        """Status written so far (None before write_header/write)."""
        return self._status

    @property
    def bytes_written(self) -> int:
        return self._written

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def committed(self) -> bool:
        """True once output has left the process and cannot be taken back."""
        return self._committed

    @property
    def started(self) -> bool:
        """True once a status or any body byte has been written."""
        return self._status is not None

    def write_header(self, status: int) -> None:
        """
        Set the response status. The first call wins.

        Later calls are logged and ignored, as a status that has been
        decided cannot change.
        """
        self._check_open()
        if self._status is not None:
            logger.warning(
                f"Superfluous write_header({status}); status already {self._status}"
            )
            return
        self._status = int(status)

    def write(self, data: Union[bytes, str]) -> int:
        """
        Append ``data`` to the body.

        Returns:
            Number of bytes written.

        Raises:
            WriteError: the writer is closed or the sink failed.
        """
        self._check_open()
        if isinstance(data, str):
            data = data.encode("utf-8")
        if self._status is None:
            self._status = HTTPStatus.OK
        try:
            self._emit(data)
        except WriteError:
            raise
        except OSError as e:
            raise WriteError("write response body", e) from e
        self._written += len(data)
        return len(data)

    def reset(self) -> None:
        """
        Discard status, headers and body written so far.

        Raises:
            WriteError: output has already been committed.
        """
        if self._committed:
            raise WriteError("response already committed")
        self._check_open()
        self.headers = {}
        self._status = None
        self._written = 0
        self._on_reset()

    def close(self) -> None:
        """Refuse every further write (client gone, deadline passed)."""
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise WriteError("response writer is closed")

    @abstractmethod
    def _emit(self, data: bytes) -> None:
        """Deliver body bytes to the sink."""

    def _on_reset(self) -> None:
        pass


class BufferedResponseWriter(ResponseWriter):
    """
    Collects the whole response in memory.

    Nothing is committed until ``finish()``, so the recovery boundary can
    always replace a half-written response with its fallback.

    Usage:
        writer = BufferedResponseWriter()
        handler.handle(writer, request)
        response = writer.finish()
    """

    def __init__(self):
        super().__init__()
        self._chunks = []
        # Timeout hands a writer to a worker thread; keep appends atomic.
        self._lock = threading.Lock()

    def _emit(self, data: bytes) -> None:
        with self._lock:
            self._chunks.append(data)

    def _on_reset(self) -> None:
        with self._lock:
            self._chunks = []

    @property
    def body(self) -> bytes:
        with self._lock:
            return b"".join(self._chunks)

    def finish(self) -> HTTPResponse:
        """Commit and return the response (status 200 if nothing was set)."""
        self._committed = True
        return HTTPResponse(
            status=self._status if self._status is not None else HTTPStatus.OK,
            headers=dict(self.headers),
            body=self.body,
        )

    def copy_to(self, other: ResponseWriter) -> None:
        """Replay status, headers and body into ``other``."""
        other.headers.update(self.headers)
        if self._status is not None:
            other.write_header(self._status)
        body = self.body
        if body:
            other.write(body)
