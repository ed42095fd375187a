"""Tests for the WebDAV fetcher using mocked HTTP sessions."""
from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List

import pytest
import requests

from koreader_highlights.config import SyncConfig, WebDavSettings
from koreader_highlights.fetchers import JsonSource, SourceReadError, WebDavFetcher, build_fetcher
from koreader_highlights.importer import import_all

LISTING = b"""<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:">
  <d:response>
    <d:href>/remote.php/dav/koreader/clipboard/</d:href>
    <d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype></d:prop></d:propstat>
  </d:response>
  <d:response>
    <d:href>/remote.php/dav/koreader/clipboard/zeta.json</d:href>
    <d:propstat><d:prop><d:resourcetype/></d:prop></d:propstat>
  </d:response>
  <d:response>
    <d:href>/remote.php/dav/koreader/clipboard/My%20Book.json</d:href>
    <d:propstat><d:prop><d:resourcetype/></d:prop></d:propstat>
  </d:response>
  <d:response>
    <d:href>/remote.php/dav/koreader/clipboard/readme.txt</d:href>
    <d:propstat><d:prop><d:resourcetype/></d:prop></d:propstat>
  </d:response>
</d:multistatus>
"""


class FakeResponse:
    def __init__(self, content: bytes = b"", *, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code


class FakeSession:
    def __init__(self, responses: Iterable[FakeResponse]) -> None:
        self.calls: List[tuple[str, str, Dict[str, object]]] = []
        self._responses = list(responses)

    def request(self, method: str, url: str, **kwargs: object) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_fetcher(session: FakeSession) -> WebDavFetcher:
    return WebDavFetcher(
        url="https://cloud.example.com/remote.php/dav/",
        username="reader",
        password="secret",
        base_path="/koreader/clipboard",
        session=session,  # type: ignore[arg-type]
    )


def test_list_sources_uses_propfind_and_keeps_only_json_files() -> None:
    session = FakeSession([FakeResponse(LISTING, status_code=207)])

    sources = make_fetcher(session).list_sources()

    assert sources == [
        JsonSource(path="/koreader/clipboard/My Book.json", kind="webdav"),
        JsonSource(path="/koreader/clipboard/zeta.json", kind="webdav"),
    ]
    method, url, kwargs = session.calls[0]
    assert method == "PROPFIND"
    assert url == "https://cloud.example.com/remote.php/dav/koreader/clipboard"
    assert kwargs["headers"]["Depth"] == "1"
    assert kwargs["auth"] == ("reader", "secret")


def test_read_text_quotes_the_remote_path() -> None:
    session = FakeSession([FakeResponse('{"entries": []}'.encode("utf-8"))])

    text = make_fetcher(session).read_text(JsonSource(path="/koreader/clipboard/My Book.json", kind="webdav"))

    assert text == '{"entries": []}'
    assert session.calls[0][:2] == (
        "GET",
        "https://cloud.example.com/remote.php/dav/koreader/clipboard/My%20Book.json",
    )


def test_http_errors_raise_source_read_error() -> None:
    session = FakeSession([FakeResponse(status_code=401)])

    with pytest.raises(SourceReadError, match="401"):
        make_fetcher(session).list_sources()


def test_connection_errors_raise_source_read_error() -> None:
    session = FakeSession([requests.ConnectionError("offline")])  # type: ignore[list-item]

    with pytest.raises(SourceReadError, match="offline"):
        make_fetcher(session).read_text(JsonSource(path="/a.json", kind="webdav"))


def test_invalid_listing_raises_source_read_error() -> None:
    session = FakeSession([FakeResponse(b"<not-xml", status_code=207)])

    with pytest.raises(SourceReadError):
        make_fetcher(session).list_sources()


def test_unconfigured_webdav_is_rejected() -> None:
    config = SyncConfig(source_type="webdav", webdav=WebDavSettings(url="", username=""))

    with pytest.raises(SourceReadError, match="WebDAV not configured"):
        build_fetcher(config)


def test_import_from_webdav_records_remote_paths(tmp_path: Path) -> None:
    export = {"book": {"title": "Dune", "author": "Frank Herbert"}, "highlights": [{"text": "Spice"}]}
    session = FakeSession(
        [
            FakeResponse(LISTING, status_code=207),
            FakeResponse(json.dumps(export).encode("utf-8")),
            FakeResponse(status_code=404),
        ]
    )
    config = SyncConfig(source_type="webdav", vault_root=tmp_path / "vault")

    summary = import_all(config, fetcher=make_fetcher(session), today=date(2024, 5, 1))

    assert (summary.created, summary.errors) == (1, 1)
    assert summary.details[0].src_path == "/koreader/clipboard/My Book.json"
    assert summary.details[1].src_path == "/koreader/clipboard/zeta.json"
    content = (tmp_path / "vault" / "Reading/Highlights/Frank Herbert - Dune.md").read_text(encoding="utf-8")
    assert 'import_source: "webdav"' in content
    assert 'src_path: "/koreader/clipboard/My Book.json"' in content


def test_listing_with_entity_declarations_is_rejected() -> None:
    listing = b"""<?xml version="1.0"?>
<!DOCTYPE d:multistatus [<!ENTITY boom "boom">]>
<d:multistatus xmlns:d="DAV:"><d:response><d:href>&boom;.json</d:href></d:response></d:multistatus>
"""
    session = FakeSession([FakeResponse(listing, status_code=207)])

    with pytest.raises(SourceReadError, match="Invalid WebDAV listing"):
        make_fetcher(session).list_sources()
