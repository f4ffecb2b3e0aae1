"""Routing and the at-most-one-download policy for a single shared file."""

from dataclasses import dataclass
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, Response

from . import config
from .completion import CompletionSignal
from .download import build_download_response
from .logging_config import log
from .metadata import FileDescriptor
from .presentation import render_info_page


@dataclass(frozen=True)
class ServingSession:
    token: str
    basename: str
    backing_path: str
    size: int
    modified_at: float
    sha1: str
    sha256: str

    @property
    def info_url(self) -> str:
        return "/" + self.token

    @property
    def download_url(self) -> str:
        return self.info_url + "/" + self.basename

    @classmethod
    def from_descriptor(cls, descriptor: FileDescriptor, token: str) -> "ServingSession":
        return cls(
            token=str(token),
            basename=descriptor.basename,
            backing_path=descriptor.path,
            size=int(descriptor.size),
            modified_at=float(descriptor.modified_at),
            sha1=descriptor.sha1,
            sha256=descriptor.sha256,
        )


class OneShotHandler:
    """Serves the info page and the download route of one session.

    The info page can be fetched any number of times. The download route
    fires the completion signal once a response has been produced from a
    successfully opened file, whether the client read it all or not. A
    failed open answers 500 and leaves the session available. Requests
    arriving after the signal fired get 410; a transfer that was already
    streaming is left to finish.
    """

    def __init__(
        self,
        session: ServingSession,
        signal: Optional[CompletionSignal] = None,
        *,
        timeout_s: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        """Initialize OneShotHandler with its session and completion signal."""
        self.session = session
        self.signal = signal if signal is not None else CompletionSignal()
        self.timeout_s = int(config.TIMEOUT_S if timeout_s is None else timeout_s)
        self.chunk_size = int(config.CHUNK_SIZE if chunk_size is None else chunk_size)

    async def handle(self, request: Request) -> Response:
        """Dispatch one request by method and exact path."""
        if request.method != "GET":
            return PlainTextResponse("Bad Request", status_code=400)
        path = request.url.path
        if path == self.session.info_url:
            return HTMLResponse(render_info_page(self.session, self.timeout_s))
        if path == self.session.download_url:
            return await self._download(request)
        return PlainTextResponse("Not Found", status_code=404)

    async def _download(self, request: Request) -> Response:
        if self.signal.fired:
            return PlainTextResponse("Gone", status_code=410)
        try:
            fileobj = await run_in_threadpool(open, self.session.backing_path, "rb")
        except OSError as e:
            log.warning("Cannot open %s for download: %s", self.session.backing_path, e)
            return PlainTextResponse("Internal Server Error", status_code=500)

        try:
            response = build_download_response(
                request.headers,
                fileobj,
                filename=self.session.basename,
                chunk_size=self.chunk_size,
                on_close=self._consume,
            )
        except OSError as e:
            fileobj.close()
            log.warning("Cannot stat %s for download: %s", self.session.backing_path, e)
            return PlainTextResponse("Internal Server Error", status_code=500)

        client = request.client.host if request.client else "-"
        log.info("Download of %s started by %s (%s)", self.session.basename, client, response.status_code)
        return response

    def _consume(self) -> None:
        if self.signal.fire("download"):
            log.info("Download of %s finished, link consumed", self.session.basename)
