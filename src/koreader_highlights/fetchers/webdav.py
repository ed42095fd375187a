"""Read KOReader exports from a WebDAV share (for example a synced clipboard folder)."""
from __future__ import annotations

import logging
import posixpath
from typing import List, Optional
from urllib.parse import quote, unquote, urlsplit
import requests
from defusedxml import ElementTree
from defusedxml.common import DefusedXmlException

from .base import JsonSource, SourceFetcher, SourceReadError

logger = logging.getLogger(__name__)

DAV_NAMESPACE = "{DAV:}"
PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop><d:resourcetype/></d:prop></d:propfind>'
)


def posix_join(base: str, name: str) -> str:
    if base.endswith("/"):
        return base + name
    return base + "/" + name


class WebDavFetcher(SourceFetcher):
    """List and download export files over WebDAV.

    Listing is a single ``PROPFIND`` (``Depth: 1``) on ``base_path``; each
    file is then fetched with ``GET``.

    Parameters
    ----------
    url:
        Root URL of the WebDAV server, e.g.
        ``https://cloud.example.com/remote.php/dav/files/me/``.
    username, password:
        HTTP basic credentials. A URL and username are required.
    base_path:
        Remote folder holding the ``*.json`` exports.
    session:
        Optional ``requests.Session``; tests inject a fake one.
    """

    kind = "webdav"

    def __init__(
        self,
        *,
        url: str,
        username: str,
        password: str = "",
        base_path: str = "/",
        session: Optional[requests.Session] = None,
    ) -> None:
        if not url or not username:
            raise SourceReadError("WebDAV not configured")
        self.url = url.rstrip("/")
        self.base_path = base_path or "/"
        self._auth = (username, password)
        self._session = session if session is not None else requests.Session()

    def list_sources(self) -> List[JsonSource]:
        response = self._request(
            "PROPFIND",
            self.base_path,
            headers={"Depth": "1", "Content-Type": "application/xml; charset=utf-8"},
            data=PROPFIND_BODY,
        )
        try:
            tree = ElementTree.fromstring(response.content)
        except (ElementTree.ParseError, DefusedXmlException) as exc:
            raise SourceReadError(f"Invalid WebDAV listing for {self.base_path}: {exc}") from exc

        sources: List[JsonSource] = []
        for item in tree.iter(f"{DAV_NAMESPACE}response"):
            href = item.findtext(f"{DAV_NAMESPACE}href") or ""
            if item.find(f".//{DAV_NAMESPACE}collection") is not None:
                continue
            basename = posixpath.basename(unquote(urlsplit(href).path).rstrip("/"))
            if basename.endswith(".json"):
                sources.append(JsonSource(path=posix_join(self.base_path, basename), kind=self.kind))
        logger.debug("WebDAV listing of %s returned %d export(s)", self.base_path, len(sources))
        return sorted(sources, key=lambda source: source.path)

    def read_text(self, source: JsonSource) -> str:
        response = self._request("GET", source.path)
        try:
            return response.content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise SourceReadError(f"Failed to decode {source.path}: {exc}") from exc

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self.url + quote(path if path.startswith("/") else "/" + path)
        try:
            response = self._session.request(method, url, auth=self._auth, **kwargs)
        except requests.RequestException as exc:
            raise SourceReadError(f"WebDAV {method} {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise SourceReadError(
                f"WebDAV {method} {path} failed with status code {response.status_code}."
            )
        return response
