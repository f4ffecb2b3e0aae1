"""File response for the download route: Range and conditional requests over an already open file."""

import hashlib
import os
import urllib.parse
from datetime import datetime, timezone
from email.utils import formatdate, parsedate_to_datetime
from typing import BinaryIO, Callable, Dict, Optional, Tuple

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from .logging_config import log


class DownloadResponse(Response):
    """Send `length` bytes of `fileobj` from `start`, then close it and call `on_close`.

    `on_close` runs once the ASGI call ends for any reason: body fully
    written, client gone, or a body-less 304/412/416 answer.
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        *,
        status_code: int,
        headers: Dict[str, str],
        start: int = 0,
        length: int = 0,
        chunk_size: int = 64 * 1024,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize DownloadResponse with an open file and the byte window to send."""
        self.fileobj = fileobj
        self.start = max(0, int(start))
        self.length = max(0, int(length))
        self.chunk_size = max(1024, int(chunk_size))
        self.on_close = on_close
        self.sent_bytes = 0
        self.status_code = int(status_code)
        self.media_type = None
        self.background = None
        self.body = b""
        self.init_headers(headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await send({"type": "http.response.start", "status": self.status_code, "headers": self.raw_headers})
            if self.length <= 0:
                await send({"type": "http.response.body", "body": b"", "more_body": False})
                return

            await run_in_threadpool(self.fileobj.seek, self.start)
            remaining = self.length
            while remaining > 0:
                chunk = await run_in_threadpool(self.fileobj.read, min(self.chunk_size, remaining))
                if not chunk:
                    log.warning("File shrank during download: %d bytes short", remaining)
                    break
                remaining -= len(chunk)
                self.sent_bytes += len(chunk)
                await send({"type": "http.response.body", "body": chunk, "more_body": remaining > 0})
            if remaining > 0:
                await send({"type": "http.response.body", "body": b"", "more_body": False})
        finally:
            try:
                self.fileobj.close()
            except OSError:
                log.exception("Failed to close download file")
            if self.on_close is not None:
                self.on_close()


def _http_date(ts: float) -> str:
    return formatdate(int(ts), usegmt=True)


def _parse_http_date(value: str) -> Optional[datetime]:
    """Parse an HTTP-date header value; None when malformed."""
    try:
        dt = parsedate_to_datetime(str(value or "").strip())
    except (TypeError, ValueError, IndexError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _mtime_dt(ts: float) -> datetime:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def make_etag(size: int, mtime: float) -> str:
    """Strong validator derived from size and modification time."""
    raw = f"{int(mtime * 1_000_000)}-{int(size)}".encode("ascii")
    return '"' + hashlib.md5(raw, usedforsecurity=False).hexdigest() + '"'


def _etag_list(value: str) -> list:
    return [t.strip() for t in str(value or "").split(",") if t.strip()]


def _etag_matches(header: str, etag: str, weak: bool) -> bool:
    """Match an If-Match / If-None-Match header against our strong etag."""
    for candidate in _etag_list(header):
        if candidate == "*":
            return True
        if weak:
            candidate = candidate[2:] if candidate.startswith("W/") else candidate
        if candidate == etag:
            return True
    return False


def parse_range(header: str, size: int) -> Optional[Tuple[int, int]]:
    """Resolve a `Range` header to an inclusive (start, end) window.

    Returns None when the header should be ignored (other unit, empty file)
    and raises ValueError when the range is malformed or unsatisfiable.
    Only the first range of a multi-range request is served.
    """
    value = str(header or "").strip()
    if not value.lower().startswith("bytes=") or size <= 0:
        return None
    raw = value[6:].split(",", 1)[0].strip()
    if "-" not in raw:
        raise ValueError("malformed range")
    left, right = (part.strip() for part in raw.split("-", 1))
    if not left:
        if not right:
            raise ValueError("malformed range")
        suffix = int(right)
        if suffix <= 0:
            raise ValueError("unsatisfiable range")
        return max(0, size - suffix), size - 1
    start = int(left)
    end = int(right) if right else size - 1
    if start < 0 or start >= size or end < start:
        raise ValueError("unsatisfiable range")
    return start, min(end, size - 1)


def _if_range_allows(header: str, etag: str, mtime: float) -> bool:
    value = str(header or "").strip()
    if not value:
        return True
    if value.startswith('"') or value.startswith("W/"):
        return value == etag
    dt = _parse_http_date(value)
    return dt is not None and _mtime_dt(mtime) == dt


def build_download_response(
    request_headers: Headers,
    fileobj: BinaryIO,
    *,
    filename: str,
    chunk_size: int,
    on_close: Optional[Callable[[], None]] = None,
) -> DownloadResponse:
    """Answer a GET for an open file the way a static file server would."""
    st = os.fstat(fileobj.fileno())
    size = int(st.st_size)
    mtime = float(st.st_mtime)
    etag = make_etag(size, mtime)
    encoded_name = urllib.parse.quote(filename)

    headers = {
        "content-type": "application/octet-stream",
        "last-modified": _http_date(mtime),
        "etag": etag,
        "accept-ranges": "bytes",
    }

    def respond(status: int, extra: Optional[Dict[str, str]] = None, start: int = 0, length: int = 0):
        out = dict(headers)
        out.update(extra or {})
        out["content-length"] = str(length)
        return DownloadResponse(
            fileobj,
            status_code=status,
            headers=out,
            start=start,
            length=length,
            chunk_size=chunk_size,
            on_close=on_close,
        )

    if_match = request_headers.get("if-match")
    if if_match is not None:
        if not _etag_matches(if_match, etag, weak=False):
            return respond(412)
    else:
        since = _parse_http_date(request_headers.get("if-unmodified-since", ""))
        if since is not None and _mtime_dt(mtime) > since:
            return respond(412)

    if_none_match = request_headers.get("if-none-match")
    if if_none_match is not None:
        if _etag_matches(if_none_match, etag, weak=True):
            return _not_modified(respond)
    else:
        since = _parse_http_date(request_headers.get("if-modified-since", ""))
        if since is not None and _mtime_dt(mtime) <= since:
            return _not_modified(respond)

    disposition = {"content-disposition": f"attachment; filename*=UTF-8''{encoded_name}"}
    range_header = request_headers.get("range", "")
    if range_header and _if_range_allows(request_headers.get("if-range", ""), etag, mtime):
        try:
            window = parse_range(range_header, size)
        # Malformed ranges are refused the same way as unsatisfiable ones.
        except ValueError:
            return respond(416, {"content-range": f"bytes */{size}"})
        if window is not None:
            start, end = window
            extra = dict(disposition)
            extra["content-range"] = f"bytes {start}-{end}/{size}"
            return respond(206, extra, start=start, length=end - start + 1)

    return respond(200, disposition, start=0, length=size)


def _not_modified(respond) -> DownloadResponse:
    response = respond(304)
    # 304 carries validators only.
    for key in ("content-length", "content-type", "accept-ranges"):
        if key in response.headers:
            del response.headers[key]
    return response
