import hashlib
import os
import tempfile
import unittest
import urllib.parse

from fastapi.testclient import TestClient

from onceshare.handler import OneShotHandler, ServingSession
from onceshare.metadata import compute_file_metadata
from onceshare.server import create_app


TOKEN = "Zm9vYmFyYmF6cXV4cXV1eGNvcmdlZ3JhdWx0Z2FycGx5"


class HandlerBehaviorTests(unittest.TestCase):
    def setUp(self):
        """Prepare a shared file, its session and a test client."""
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.data = os.urandom(200_000) + b"tail"
        self.path = os.path.join(self._tmp.name, "payload.bin")
        with open(self.path, "wb") as f:
            f.write(self.data)
        self.session = ServingSession.from_descriptor(compute_file_metadata(self.path), TOKEN)
        self.handler = OneShotHandler(self.session, timeout_s=86400, chunk_size=4096)
        self.client = TestClient(create_app(self.handler))

    def test_session_urls_are_derived_from_token_and_basename(self):
        self.assertEqual(self.session.info_url, f"/{TOKEN}")
        self.assertEqual(self.session.download_url, f"/{TOKEN}/payload.bin")

    def test_info_page_lists_metadata_and_download_link(self):
        """Validate scenario: GET /token renders size, digests and the download link."""
        r = self.client.get(self.session.info_url)
        self.assertEqual(r.status_code, 200, r.text)
        self.assertIn("text/html", r.headers["content-type"])
        self.assertIn("<h3>payload.bin</h3>", r.text)
        self.assertIn(f'"{self.session.download_url}"', r.text)
        self.assertIn(f"<dd>{len(self.data)}</dd>", r.text)
        self.assertIn(hashlib.sha1(self.data).hexdigest(), r.text)
        self.assertIn(hashlib.sha256(self.data).hexdigest(), r.text)
        self.assertIn("Link expires after 1 day or downloading", r.text)
        self.assertFalse(self.handler.signal.fired)

    def test_download_streams_identical_bytes_and_consumes_session(self):
        """Validate scenario: streamed bytes hash to the digests shown on the info page."""
        r = self.client.get(self.session.download_url)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.headers["content-type"], "application/octet-stream")
        self.assertEqual(r.headers["content-length"], str(len(self.data)))
        self.assertEqual(r.headers["accept-ranges"], "bytes")
        self.assertIn("last-modified", r.headers)
        self.assertIn("filename*=UTF-8''payload.bin", r.headers["content-disposition"])
        self.assertEqual(r.content, self.data)
        self.assertEqual(hashlib.sha1(r.content).hexdigest(), self.session.sha1)
        self.assertEqual(hashlib.sha256(r.content).hexdigest(), self.session.sha256)
        self.assertTrue(self.handler.signal.fired)
        self.assertEqual(self.handler.signal.reason, "download")

    def test_download_after_consumption_is_gone_but_info_page_stays(self):
        self.assertEqual(self.client.get(self.session.download_url).status_code, 200)
        self.assertEqual(self.client.get(self.session.download_url).status_code, 410)
        self.assertEqual(self.client.get(self.session.info_url).status_code, 200)

    def test_download_after_timeout_is_gone(self):
        self.handler.signal.fire("timeout")
        r = self.client.get(self.session.download_url)
        self.assertEqual(r.status_code, 410)
        self.assertEqual(self.handler.signal.reason, "timeout")

    def test_unknown_paths_return_404_without_consuming(self):
        for path in ("/", "/other", f"/{TOKEN}/other.bin", f"/{TOKEN}/", f"/{TOKEN}x", "/payload.bin"):
            r = self.client.get(path)
            self.assertEqual(r.status_code, 404, path)
        self.assertFalse(self.handler.signal.fired)

    def test_non_get_methods_return_400_without_consuming(self):
        """Validate scenario: POST/HEAD/PUT/DELETE to either route answer 400."""
        for method in ("POST", "PUT", "DELETE", "HEAD", "PATCH", "OPTIONS"):
            r = self.client.request(method, self.session.download_url)
            self.assertEqual(r.status_code, 400, method)
        self.assertEqual(self.client.post(self.session.info_url).status_code, 400)
        self.assertEqual(self.client.post("/elsewhere").status_code, 400)
        self.assertFalse(self.handler.signal.fired)

    def test_failed_open_returns_500_and_keeps_session_available(self):
        """Validate scenario: an unreadable file does not consume the one-shot slot."""
        moved = self.path + ".away"
        os.rename(self.path, moved)
        r = self.client.get(self.session.download_url)
        self.assertEqual(r.status_code, 500)
        self.assertFalse(self.handler.signal.fired)

        os.rename(moved, self.path)
        r = self.client.get(self.session.download_url)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.content, self.data)
        self.assertTrue(self.handler.signal.fired)

    def test_range_request_returns_partial_content_and_consumes(self):
        r = self.client.get(self.session.download_url, headers={"Range": "bytes=10-19"})
        self.assertEqual(r.status_code, 206)
        self.assertEqual(r.content, self.data[10:20])
        self.assertEqual(r.headers["content-range"], f"bytes 10-19/{len(self.data)}")
        self.assertTrue(self.handler.signal.fired)

    def test_unsatisfiable_range_returns_416(self):
        r = self.client.get(self.session.download_url, headers={"Range": f"bytes={len(self.data) + 5}-"})
        self.assertEqual(r.status_code, 416)
        self.assertEqual(r.headers["content-range"], f"bytes */{len(self.data)}")

    def test_malformed_range_returns_416_and_consumes(self):
        """Validate scenario: a syntactically bad byte range is refused, not ignored."""
        r = self.client.get(self.session.download_url, headers={"Range": "bytes=abc"})
        self.assertEqual(r.status_code, 416)
        self.assertEqual(r.headers["content-range"], f"bytes */{len(self.data)}")
        self.assertTrue(self.handler.signal.fired)

    def test_matching_etag_returns_304_and_still_consumes(self):
        etag = self.client.get(self.session.download_url).headers["etag"]

        handler = OneShotHandler(self.session, timeout_s=86400)
        client = TestClient(create_app(handler))
        r = client.get(self.session.download_url, headers={"If-None-Match": etag})
        self.assertEqual(r.status_code, 304)
        self.assertEqual(r.content, b"")
        self.assertEqual(r.headers["etag"], etag)
        self.assertTrue(handler.signal.fired)

    def test_basename_with_spaces_and_unicode_is_served(self):
        path = os.path.join(self._tmp.name, "my report é.txt")
        with open(path, "wb") as f:
            f.write(b"hello there")
        session = ServingSession.from_descriptor(compute_file_metadata(path), TOKEN)
        client = TestClient(create_app(OneShotHandler(session, timeout_s=3600)))

        page = client.get(session.info_url)
        quoted = urllib.parse.quote(session.download_url)
        self.assertIn(f'"{quoted}"', page.text)
        self.assertIn("Link expires after 1 hour or downloading", page.text)

        r = client.get(quoted)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.content, b"hello there")


if __name__ == "__main__":
    unittest.main()
