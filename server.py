"""Read-only WebDAV server for a file provider, built on http.server."""

import html
import io
import json
import logging
import mimetypes
import shutil
import zipfile
import xml.etree.ElementTree as ET
from email.utils import format_datetime
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from urllib.parse import unquote, quote, urlparse, parse_qs

from fileprovider import FileInfo, FileProvider
from store import StoreError

logger = logging.getLogger(__name__)

DAV_NS = "DAV:"
SUPPORTED_PROPS = [
    "displayname",
    "getcontentlength",
    "getcontenttype",
    "resourcetype",
    "getlastmodified",
]
ALLOWED_METHODS = "OPTIONS, GET, HEAD, PROPFIND"


def _parse_path(raw: str) -> str:
    """Decode a URL path into a provider subpath. The root becomes ''."""
    decoded = unquote(raw)
    return "/".join(p for p in decoded.split("/") if p)


def _content_type(name: str) -> str:
    return mimetypes.guess_type(name)[0] or "application/octet-stream"


def _http_date(info: FileInfo) -> str:
    return format_datetime(info.last_modified, usegmt=True)


def _build_response_element(href: str, info: FileInfo | None, include_props: list[str] | None = None) -> ET.Element:
    """Build a DAV:response element. info is None for the root collection."""
    response = ET.Element(f"{{{DAV_NS}}}response")

    href_el = ET.SubElement(response, f"{{{DAV_NS}}}href")
    href_el.text = href

    propstat = ET.SubElement(response, f"{{{DAV_NS}}}propstat")
    prop = ET.SubElement(propstat, f"{{{DAV_NS}}}prop")

    props_to_report = include_props if include_props is not None else SUPPORTED_PROPS

    for pname in props_to_report:
        if pname == "displayname":
            el = ET.SubElement(prop, f"{{{DAV_NS}}}displayname")
            el.text = info.name if info is not None else "/"
        elif pname == "getcontentlength":
            if info is not None:
                el = ET.SubElement(prop, f"{{{DAV_NS}}}getcontentlength")
                el.text = str(info.length)
        elif pname == "getcontenttype":
            if info is not None:
                el = ET.SubElement(prop, f"{{{DAV_NS}}}getcontenttype")
                el.text = _content_type(info.name)
        elif pname == "resourcetype":
            rt = ET.SubElement(prop, f"{{{DAV_NS}}}resourcetype")
            if info is None:
                ET.SubElement(rt, f"{{{DAV_NS}}}collection")
        elif pname == "getlastmodified":
            if info is not None:
                el = ET.SubElement(prop, f"{{{DAV_NS}}}getlastmodified")
                el.text = _http_date(info)

    status = ET.SubElement(propstat, f"{{{DAV_NS}}}status")
    status.text = "HTTP/1.1 200 OK"

    return response


def _multistatus_xml(responses: list[ET.Element]) -> bytes:
    """Wrap response elements in a multistatus document and serialize."""
    ET.register_namespace("D", DAV_NS)
    ms = ET.Element(f"{{{DAV_NS}}}multistatus")
    for r in responses:
        ms.append(r)

    buf = io.BytesIO()
    tree = ET.ElementTree(ms)
    tree.write(buf, xml_declaration=True, encoding="utf-8")
    return buf.getvalue()


def _parse_propfind_body(body: bytes) -> list[str] | None:
    """Parse a PROPFIND request body to determine requested properties.

    Returns None for allprop (or empty body), or a list of property local names.
    """
    if not body or not body.strip():
        return None

    root = ET.fromstring(body)
    if root.find(f"{{{DAV_NS}}}allprop") is not None:
        return None

    prop_el = root.find(f"{{{DAV_NS}}}prop")
    if prop_el is None:
        return None

    props = []
    for child in prop_el:
        tag = child.tag
        if tag.startswith(f"{{{DAV_NS}}}"):
            tag = tag[len(f"{{{DAV_NS}}}"):]
        props.append(tag)
    return props


def _metadata(info: FileInfo) -> dict:
    return {"length": info.length, "last_modified": info.last_modified.isoformat()}


class _NotFound(Exception):
    pass


class WebDAVHandler(BaseHTTPRequestHandler):
    """HTTP request handler for read-only WebDAV over a flat file provider."""

    provider: FileProvider

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send(self, status: int, body: bytes, content_type: str, include_body: bool = True):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def _parse_request_path(self) -> tuple[str, str | None]:
        """Parse the request URL into (subpath, dump_format).

        dump_format is "json", "zip", or None.
        """
        parsed = urlparse(self.path)
        path = _parse_path(parsed.path)
        qs = parse_qs(parsed.query, keep_blank_values=True)
        if "json" in qs:
            return path, "json"
        if "zip" in qs:
            return path, "zip"
        return path, None

    def _lookup(self, path: str) -> list[FileInfo] | FileInfo:
        """Return the root listing for '' or the file at path. Raises _NotFound."""
        if path == "":
            contents = self.provider.get_directory_contents("")
            if not contents.exists:
                raise _NotFound(path)
            return list(contents)
        info = self.provider.get_file_info(path)
        if not info.exists:
            raise _NotFound(path)
        return info

    def _try(self, fn, include_body: bool = True):
        """Call fn(), returning its result. On lookup or store errors, send an error response and return None."""
        try:
            return fn()
        except _NotFound:
            self._send(404, b"Not Found", "text/plain", include_body)
            return None
        except StoreError as e:
            logger.warning("Store error serving %s: %s", self.path, e)
            self._send(500, str(e).encode(), "text/plain", include_body)
            return None

    def do_OPTIONS(self):
        self.send_response(200)
        self.send_header("Allow", ALLOWED_METHODS)
        self.send_header("DAV", "1")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self):
        self._handle_get(include_body=True)

    def do_HEAD(self):
        self._handle_get(include_body=False)

    def _build_json(self, target) -> bytes:
        if isinstance(target, list):
            tree = {info.name: _metadata(info) for info in target}
        else:
            tree = _metadata(target)
        return json.dumps(tree, indent=2, ensure_ascii=False).encode("utf-8")

    def _build_zip(self, target) -> bytes:
        buf = io.BytesIO()
        files = target if isinstance(target, list) else [target]
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            for info in files:
                with info.create_read_stream() as stream:
                    zf.writestr(info.name, stream.read())
        return buf.getvalue()

    def _handle_get(self, include_body: bool):
        path, dump_format = self._parse_request_path()

        target = self._try(lambda: self._lookup(path), include_body)
        if target is None:
            return

        if dump_format == "json":
            body = self._try(lambda: self._build_json(target), include_body)
            if body is None:
                return
            return self._send(200, body, "application/json; charset=utf-8", include_body)

        if dump_format == "zip":
            body = self._try(lambda: self._build_zip(target), include_body)
            if body is None:
                return
            return self._send(200, body, "application/zip", include_body)

        if isinstance(target, list):
            lines = ["<html><head><title>/</title></head><body>", "<h1>/</h1><ul>"]
            for info in target:
                lines.append(f'<li><a href="{quote(info.name, safe="")}">{html.escape(info.name)}</a></li>')
            lines.append("</ul></body></html>")
            body = "\n".join(lines).encode("utf-8")
            return self._send(200, body, "text/html; charset=utf-8", include_body)

        info = target
        if include_body:
            stream = self._try(info.create_read_stream)
            if stream is None:
                return
        else:
            stream = None
        try:
            length = self._try(lambda: info.length, include_body)
            if length is None:
                return
            self.send_response(200)
            self.send_header("Content-Type", _content_type(info.name))
            self.send_header("Content-Length", str(length))
            self.send_header("Last-Modified", _http_date(info))
            self.end_headers()
            if stream is not None:
                shutil.copyfileobj(stream, self.wfile)
        finally:
            if stream is not None:
                stream.close()

    def do_PROPFIND(self):
        path, _ = self._parse_request_path()
        depth = self.headers.get("Depth", "1")

        content_length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(content_length) if content_length > 0 else b""
        try:
            requested_props = _parse_propfind_body(body)
        except ET.ParseError as e:
            self._send(400, f"Malformed PROPFIND body: {e}".encode(), "text/plain")
            return

        target = self._try(lambda: self._lookup(path))
        if target is None:
            return

        def build():
            if not isinstance(target, list):
                return [_build_response_element("/" + quote(path), target, requested_props)]
            responses = [_build_response_element("/", None, requested_props)]
            # Flat namespace: "infinity" reaches no further than "1".
            if depth != "0":
                for info in target:
                    try:
                        responses.append(_build_response_element(
                            "/" + quote(info.name, safe=""), info, requested_props
                        ))
                    except StoreError as e:
                        logger.warning("Skipping %s in listing: %s", info.name, e)
            return responses

        responses = self._try(build)
        if responses is None:
            return
        self._send(207, _multistatus_xml(responses), "application/xml; charset=utf-8")

    def _method_not_allowed(self):
        self.send_response(405)
        self.send_header("Allow", ALLOWED_METHODS)
        self.send_header("Content-Length", "0")
        self.end_headers()

    do_PUT = lambda self: self._method_not_allowed()
    do_DELETE = lambda self: self._method_not_allowed()
    do_MKCOL = lambda self: self._method_not_allowed()
    do_PROPPATCH = lambda self: self._method_not_allowed()
    do_MOVE = lambda self: self._method_not_allowed()
    do_COPY = lambda self: self._method_not_allowed()
    do_LOCK = lambda self: self._method_not_allowed()
    do_UNLOCK = lambda self: self._method_not_allowed()
    do_POST = lambda self: self._method_not_allowed()
    do_PATCH = lambda self: self._method_not_allowed()


def make_server(provider: FileProvider, host: str = "localhost", port: int = 8080) -> ThreadingHTTPServer:
    """Create a WebDAV server for the given file provider."""
    handler_class = type("Handler", (WebDAVHandler,), {"provider": provider})
    return ThreadingHTTPServer((host, port), handler_class)
