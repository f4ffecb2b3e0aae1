"""Info page rendering and public URL composition."""

import html
import ipaddress
import urllib.parse
from typing import Optional


_PAGE = """<title>Link expires after {expires} or downloading</title>
<h3>{basename}</h3>
<p><a href=
"{download_url}"
>Download</a></p>
<dl>
<dt>size</dt><dd>{size}</dd>
<dt>sha1</dt><dd>{sha1}</dd>
<dt>sha256</dt><dd>{sha256}</dd>
</dl>
"""


def human_duration(seconds: int) -> str:
    """Render a timeout as "1 day", "2 hours", "90 seconds"."""
    s = max(0, int(seconds))
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if s >= size and s % size == 0:
            n = s // size
            return f"{n} {unit}" if n == 1 else f"{n} {unit}s"
    return "1 second" if s == 1 else f"{s} seconds"


def render_info_page(session, timeout_s: int = 24 * 60 * 60) -> str:
    """Return the HTML info page for a serving session."""
    return _PAGE.format(
        expires=html.escape(human_duration(timeout_s)),
        basename=html.escape(session.basename),
        download_url=html.escape(urllib.parse.quote(session.download_url), quote=True),
        size=int(session.size),
        sha1=html.escape(session.sha1),
        sha256=html.escape(session.sha256),
    )


def format_host(host: str) -> str:
    """Bracket IPv6 literals for use in a URL authority."""
    value = str(host or "").strip()
    try:
        if isinstance(ipaddress.ip_address(value), ipaddress.IPv6Address):
            return f"[{value}]"
    except ValueError:
        pass
    return value


def entry_url(host: str, port: int, session, scheme: Optional[str] = None) -> str:
    """Compose the public URL printed at startup."""
    proto = str(scheme or "http").strip().lower() or "http"
    return f"{proto}://{format_host(host)}:{int(port)}{urllib.parse.quote(session.info_url)}"
