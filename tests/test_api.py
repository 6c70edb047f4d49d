"""Tests for the Semble HTTP client."""

from __future__ import annotations

import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from semble_recs.api import SembleAPI
from semble_recs.errors import SembleAPIError


def _response(payload: object) -> MagicMock:
    response = MagicMock()
    response.read.return_value = json.dumps(payload).encode()
    response.__enter__ = lambda s: s
    response.__exit__ = MagicMock(return_value=False)
    return response


def _card_payload(card_id: str) -> dict:
    return {
        "id": card_id,
        "url": f"https://example.com/{card_id}",
        "uri": f"at://did:plc:abc/network.cosmik.card/{card_id}",
        "metadata": {"title": f"Title {card_id}", "siteName": "Example"},
        "cardContent": {"title": "my note"},
        "createdAt": "2025-01-01T00:00:00Z",
    }


SEARCH_PAYLOAD = {
    "urls": [
        {
            "url": "https://found.com/a",
            "metadata": {"title": "Found", "siteName": "Found Site", "author": "Ann"},
            "urlLibraryCount": 12,
        }
    ],
    "pagination": {"hasMore": False, "currentPage": 1},
}


class TestFetchUserCards:
    def test_follows_pagination(self):
        pages = [
            _response(
                {
                    "cards": [_card_payload("1"), _card_payload("2")],
                    "pagination": {"hasMore": True, "currentPage": 1},
                }
            ),
            _response(
                {"cards": [_card_payload("3")], "pagination": {"hasMore": False, "currentPage": 2}}
            ),
        ]
        with patch("urllib.request.urlopen", side_effect=pages) as mock_open:
            cards = SembleAPI().fetch_user_cards("alice.bsky.social")

        assert [c.id for c in cards] == ["1", "2", "3"]
        assert cards[0].site_name == "Example"
        assert cards[0].card_content is not None
        assert cards[0].card_content.title == "my note"

        first_url = mock_open.call_args_list[0][0][0].full_url
        second_url = mock_open.call_args_list[1][0][0].full_url
        assert first_url.startswith("https://api.semble.so/api/cards/user/alice.bsky.social?")
        assert "page=1" in first_url and "limit=50" in first_url
        assert "page=2" in second_url

    def test_stops_at_max_pages(self):
        def _page(*_args, **_kwargs):
            return _response({"cards": [_card_payload("x")], "pagination": {"hasMore": True}})

        with patch("urllib.request.urlopen", side_effect=_page) as mock_open:
            cards = SembleAPI(max_pages=3).fetch_user_cards("bob")

        assert len(cards) == 3
        assert mock_open.call_count == 3

    def test_http_error_raises(self):
        err = urllib.error.HTTPError("https://api.semble.so", 404, "Not Found", None, None)
        with patch("urllib.request.urlopen", side_effect=err):
            with pytest.raises(SembleAPIError) as exc_info:
                SembleAPI().fetch_user_cards("nobody")
        assert exc_info.value.status == 404

    def test_network_error_raises(self):
        with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("down")):
            with pytest.raises(SembleAPIError):
                SembleAPI().fetch_user_cards("alice")

    def test_invalid_json_raises(self):
        response = MagicMock()
        response.read.return_value = b"<html>oops</html>"
        response.__enter__ = lambda s: s
        response.__exit__ = MagicMock(return_value=False)
        with patch("urllib.request.urlopen", return_value=response):
            with pytest.raises(SembleAPIError):
                SembleAPI().fetch_user_cards("alice")


class TestSearch:
    def test_semantic_search(self):
        with patch("urllib.request.urlopen", return_value=_response(SEARCH_PAYLOAD)) as mock_open:
            urls = SembleAPI().semantic_search("garden backyard soil", limit=10, threshold=0.4)

        assert len(urls) == 1
        assert urls[0].url == "https://found.com/a"
        assert urls[0].url_library_count == 12
        assert urls[0].metadata.site_name == "Found Site"
        request_url = mock_open.call_args[0][0].full_url
        assert "/api/search/semantic?" in request_url
        assert "query=garden+backyard+soil" in request_url
        assert "threshold=0.4" in request_url
        assert "limit=10" in request_url

    def test_similar_urls(self):
        with patch("urllib.request.urlopen", return_value=_response(SEARCH_PAYLOAD)) as mock_open:
            urls = SembleAPI("https://semble.test/").get_similar_urls(
                "https://mine.com/1", limit=10, threshold=0.5
            )

        assert [u.url for u in urls] == ["https://found.com/a"]
        request_url = mock_open.call_args[0][0].full_url
        assert request_url.startswith("https://semble.test/api/search/similar-urls?")
        assert "url=https%3A%2F%2Fmine.com%2F1" in request_url

    def test_malformed_payload_raises(self):
        with patch("urllib.request.urlopen", return_value=_response({"urls": [{"nope": 1}]})):
            with pytest.raises(SembleAPIError):
                SembleAPI().semantic_search("x", limit=1, threshold=0.1)

    def test_non_object_payload_raises(self):
        with patch("urllib.request.urlopen", return_value=_response([1, 2, 3])):
            with pytest.raises(SembleAPIError):
                SembleAPI().semantic_search("x", limit=1, threshold=0.1)


class TestOverlapLookups:
    def test_libraries_for_url(self):
        payload = {
            "libraries": [
                {
                    "user": {"id": "did:plc:bob", "handle": "bob.test", "name": "Bob"},
                    "card": _card_payload("9"),
                }
            ]
        }
        with patch("urllib.request.urlopen", return_value=_response(payload)) as mock_open:
            entries = SembleAPI().libraries_for_url("https://mine.com/1")

        assert [(e.user.handle, e.card.id) for e in entries] == [("bob.test", "9")]
        request_url = mock_open.call_args[0][0].full_url
        assert request_url.startswith("https://api.semble.so/api/cards/libraries/url?")
        assert "url=https%3A%2F%2Fmine.com%2F1" in request_url

    def test_collections_for_url(self):
        payload = {
            "collections": [
                {"uri": "at://bob.test/1", "name": "Reading", "author": {"handle": "bob.test"}}
            ]
        }
        with patch("urllib.request.urlopen", return_value=_response(payload)) as mock_open:
            collections = SembleAPI().collections_for_url("https://mine.com/1")

        assert [(c.name, c.author.handle) for c in collections] == [("Reading", "bob.test")]
        assert "/api/collections/url?" in mock_open.call_args[0][0].full_url

    def test_missing_list_is_empty(self):
        with patch("urllib.request.urlopen", return_value=_response({})):
            assert SembleAPI().collections_for_url("https://x.com") == []

    def test_get_collection(self):
        payload = {
            "name": "Mine",
            "author": {"handle": "me.test"},
            "urlCards": [_card_payload("1"), _card_payload("2")],
        }
        with patch("urllib.request.urlopen", return_value=_response(payload)) as mock_open:
            collection = SembleAPI().get_collection("me.test", "3abc")

        assert collection.author.handle == "me.test"
        assert [c.id for c in collection.url_cards] == ["1", "2"]
        assert mock_open.call_args[0][0].full_url == (
            "https://api.semble.so/api/collections/at/me.test/3abc"
        )

    def test_malformed_entry_raises(self):
        payload = {"libraries": [{"user": {"handle": "bob.test"}}]}
        with patch("urllib.request.urlopen", return_value=_response(payload)):
            with pytest.raises(SembleAPIError):
                SembleAPI().libraries_for_url("https://x.com")
