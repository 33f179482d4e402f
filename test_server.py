"""Tests for the WebDAV server over an embedded file provider."""

import io
import json
import threading
import unittest
import xml.etree.ElementTree as ET
import zipfile
from http.client import HTTPConnection

from embedded import EmbeddedFileProvider
from server import make_server, DAV_NS
from store import MemoryStore, StoreError


SAMPLE_RESOURCES = {
    "MyLib.hello.txt": "Hello, world!",
    "MyLib.empty.txt": "",
    "MyLib.binary.bin": b"\x00\x01\x02\x03",
    "MyLib.docs.guide.txt": "A guide to things",
    "Other.secret.txt": "Not served",
}


class FlakyStore(MemoryStore):
    """Fails to open one resource it reports as present."""

    def open(self, name):
        if name.endswith("broken.txt"):
            raise StoreError(f"Cannot read {name}")
        return super().open(name)


class TestWebDAVServer(unittest.TestCase):
    """Integration tests against a live WebDAV server."""

    @classmethod
    def setUpClass(cls):
        cls.provider = EmbeddedFileProvider(MemoryStore(SAMPLE_RESOURCES), "MyLib")
        cls.server = make_server(cls.provider, "127.0.0.1", 0)
        cls.port = cls.server.server_address[1]
        cls.thread = threading.Thread(target=cls.server.serve_forever)
        cls.thread.daemon = True
        cls.thread.start()

    @classmethod
    def tearDownClass(cls):
        cls.server.shutdown()
        cls.server.server_close()
        cls.thread.join(timeout=2)

    def _conn(self) -> HTTPConnection:
        return HTTPConnection("127.0.0.1", self.port)

    def _request(self, method: str, path: str, **kwargs) -> tuple:
        conn = self._conn()
        conn.request(method, path, **kwargs)
        resp = conn.getresponse()
        data = resp.read()
        conn.close()
        return resp, data

    def _propfind(self, path: str, depth: str = "1", body: bytes = b"") -> tuple:
        headers = {"Depth": depth}
        if body:
            headers["Content-Type"] = "application/xml"
            headers["Content-Length"] = str(len(body))
        resp, data = self._request("PROPFIND", path, body=body, headers=headers)
        if resp.status == 207:
            return resp.status, ET.fromstring(data)
        return resp.status, data

    # --- OPTIONS ---

    def test_options(self):
        resp, _ = self._request("OPTIONS", "/")
        self.assertEqual(resp.status, 200)
        self.assertIn("PROPFIND", resp.getheader("Allow"))
        self.assertEqual(resp.getheader("DAV"), "1")

    # --- GET ---

    def test_get_file(self):
        resp, data = self._request("GET", "/hello.txt")
        self.assertEqual(resp.status, 200)
        self.assertEqual(data, b"Hello, world!")
        self.assertEqual(resp.getheader("Content-Length"), "13")
        self.assertIn("text/plain", resp.getheader("Content-Type"))
        self.assertEqual(resp.getheader("Last-Modified"), "Fri, 31 Dec 9999 23:59:59 GMT")

    def test_get_empty_file(self):
        resp, data = self._request("GET", "/empty.txt")
        self.assertEqual(resp.status, 200)
        self.assertEqual(data, b"")

    def test_get_binary(self):
        resp, data = self._request("GET", "/binary.bin")
        self.assertEqual(resp.status, 200)
        self.assertEqual(data, b"\x00\x01\x02\x03")

    def test_get_nested_path(self):
        resp, data = self._request("GET", "/docs/guide.txt")
        self.assertEqual(resp.status, 200)
        self.assertEqual(data, b"A guide to things")

    def test_get_flattened_name(self):
        resp, data = self._request("GET", "/docs.guide.txt")
        self.assertEqual(resp.status, 200)
        self.assertEqual(data, b"A guide to things")

    def test_get_root_listing(self):
        resp, data = self._request("GET", "/")
        self.assertEqual(resp.status, 200)
        self.assertIn(b"hello.txt", data)
        self.assertIn(b"docs.guide.txt", data)
        self.assertNotIn(b"secret.txt", data)

    def test_get_not_found(self):
        resp, _ = self._request("GET", "/nonexistent")
        self.assertEqual(resp.status, 404)

    def test_get_outside_namespace(self):
        resp, _ = self._request("GET", "/secret.txt")
        self.assertEqual(resp.status, 404)

    def test_get_case_sensitive(self):
        resp, _ = self._request("GET", "/HELLO.txt")
        self.assertEqual(resp.status, 404)

    def test_double_slash(self):
        resp, data = self._request("GET", "//hello.txt")
        self.assertEqual(resp.status, 200)
        self.assertEqual(data, b"Hello, world!")

    # --- HEAD ---

    def test_head_file(self):
        resp, data = self._request("HEAD", "/hello.txt")
        self.assertEqual(resp.status, 200)
        self.assertEqual(resp.getheader("Content-Length"), "13")
        self.assertEqual(data, b"")

    # --- PROPFIND ---

    def test_propfind_root_depth0(self):
        status, xml = self._propfind("/", depth="0")
        self.assertEqual(status, 207)
        responses = xml.findall(f"{{{DAV_NS}}}response")
        self.assertEqual(len(responses), 1)
        rt = responses[0].find(f".//{{{DAV_NS}}}resourcetype")
        self.assertIsNotNone(rt.find(f"{{{DAV_NS}}}collection"))

    def test_propfind_root_depth1(self):
        status, xml = self._propfind("/", depth="1")
        self.assertEqual(status, 207)
        responses = xml.findall(f"{{{DAV_NS}}}response")
        names = [r.find(f".//{{{DAV_NS}}}displayname").text for r in responses]
        self.assertEqual(names, ["/", "hello.txt", "empty.txt", "binary.bin", "docs.guide.txt"])

    def test_propfind_file(self):
        status, xml = self._propfind("/hello.txt", depth="0")
        self.assertEqual(status, 207)
        responses = xml.findall(f"{{{DAV_NS}}}response")
        self.assertEqual(len(responses), 1)
        cl = responses[0].find(f".//{{{DAV_NS}}}getcontentlength")
        self.assertEqual(cl.text, "13")
        rt = responses[0].find(f".//{{{DAV_NS}}}resourcetype")
        self.assertIsNone(rt.find(f"{{{DAV_NS}}}collection"))

    def test_propfind_not_found(self):
        status, _ = self._propfind("/nonexistent", depth="0")
        self.assertEqual(status, 404)

    def test_propfind_specific_props(self):
        body = b'<?xml version="1.0"?><D:propfind xmlns:D="DAV:"><D:prop><D:displayname/><D:getlastmodified/></D:prop></D:propfind>'
        status, xml = self._propfind("/hello.txt", depth="0", body=body)
        self.assertEqual(status, 207)
        prop = xml.find(f".//{{{DAV_NS}}}prop")
        self.assertEqual(prop.find(f"{{{DAV_NS}}}displayname").text, "hello.txt")
        self.assertIsNotNone(prop.find(f"{{{DAV_NS}}}getlastmodified"))
        self.assertIsNone(prop.find(f"{{{DAV_NS}}}getcontentlength"))

    def test_propfind_malformed_body(self):
        status, data = self._propfind("/hello.txt", depth="0", body=b"<D:propfind xmlns:D=")
        self.assertEqual(status, 400)
        self.assertIn(b"Malformed", data)

    # --- Write methods should be rejected ---

    def test_write_methods_rejected(self):
        for method in ("PUT", "DELETE", "MKCOL", "LOCK"):
            resp, _ = self._request(method, "/hello.txt")
            self.assertEqual(resp.status, 405, method)

    # --- ?json / ?zip ---

    def test_json_root(self):
        resp, data = self._request("GET", "/?json")
        self.assertEqual(resp.status, 200)
        result = json.loads(data)
        self.assertEqual(result["hello.txt"]["length"], 13)
        self.assertEqual(result["docs.guide.txt"]["length"], 17)
        self.assertNotIn("secret.txt", result)

    def test_json_file(self):
        resp, data = self._request("GET", "/binary.bin?json")
        self.assertEqual(resp.status, 200)
        self.assertEqual(json.loads(data)["length"], 4)

    def test_zip_file(self):
        resp, data = self._request("GET", "/hello.txt?zip")
        self.assertEqual(resp.status, 200)
        self.assertEqual(resp.getheader("Content-Type"), "application/zip")
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            self.assertEqual(zf.namelist(), ["hello.txt"])
            self.assertEqual(zf.read("hello.txt"), b"Hello, world!")

    def test_zip_not_found(self):
        resp, _ = self._request("GET", "/nonexistent?zip")
        self.assertEqual(resp.status, 404)


class TestZipDownload(unittest.TestCase):
    def test_zip_root(self):
        provider = EmbeddedFileProvider(MemoryStore({"NS.a.txt": "A", "NS.b.c.txt": "BC"}), "NS")
        server = make_server(provider, "127.0.0.1", 0)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        try:
            conn = HTTPConnection("127.0.0.1", server.server_address[1])
            conn.request("GET", "/?zip")
            resp = conn.getresponse()
            data = resp.read()
            conn.close()
        finally:
            server.shutdown()
            server.server_close()
            thread.join(timeout=2)
        self.assertEqual(resp.status, 200)
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            self.assertEqual(sorted(zf.namelist()), ["a.txt", "b.c.txt"])
            self.assertEqual(zf.read("b.c.txt"), b"BC")


class TestListingEscaping(unittest.TestCase):
    def test_names_escaped(self):
        provider = EmbeddedFileProvider(MemoryStore({"NS.a<b>&c.txt": "x"}), "NS")
        server = make_server(provider, "127.0.0.1", 0)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        try:
            conn = HTTPConnection("127.0.0.1", server.server_address[1])
            conn.request("GET", "/")
            resp = conn.getresponse()
            data = resp.read()
            conn.close()
        finally:
            server.shutdown()
            server.server_close()
            thread.join(timeout=2)
        self.assertEqual(resp.status, 200)
        self.assertIn(b"a&lt;b&gt;&amp;c.txt", data)
        self.assertNotIn(b"<b>", data)


class TestStoreErrors(unittest.TestCase):
    """A resource the store lists but cannot open."""

    @classmethod
    def setUpClass(cls):
        store = FlakyStore({"NS.ok.txt": "fine", "NS.broken.txt": "unreadable"})
        cls.server = make_server(EmbeddedFileProvider(store, "NS"), "127.0.0.1", 0)
        cls.port = cls.server.server_address[1]
        cls.thread = threading.Thread(target=cls.server.serve_forever)
        cls.thread.daemon = True
        cls.thread.start()

    @classmethod
    def tearDownClass(cls):
        cls.server.shutdown()
        cls.server.server_close()
        cls.thread.join(timeout=2)

    def _request(self, method: str, path: str, **kwargs) -> tuple:
        conn = HTTPConnection("127.0.0.1", self.port)
        conn.request(method, path, **kwargs)
        resp = conn.getresponse()
        data = resp.read()
        conn.close()
        return resp, data

    def test_get_fails(self):
        resp, _ = self._request("GET", "/broken.txt")
        self.assertEqual(resp.status, 500)

    def test_head_fails(self):
        resp, _ = self._request("HEAD", "/broken.txt")
        self.assertEqual(resp.status, 500)

    def test_propfind_skips_unreadable(self):
        resp, data = self._request("PROPFIND", "/", headers={"Depth": "1"})
        self.assertEqual(resp.status, 207)
        names = [el.text for el in ET.fromstring(data).iter(f"{{{DAV_NS}}}displayname")]
        self.assertEqual(names, ["/", "ok.txt"])

    def test_zip_fails(self):
        resp, _ = self._request("GET", "/?zip")
        self.assertEqual(resp.status, 500)


if __name__ == "__main__":
    unittest.main()
