"""Tests for legiswatch.sources.utah_glen — Utah GLEN adapter."""

from __future__ import annotations

from unittest.mock import patch

import httpx

from legiswatch.sources.models import SourceFetchParams
from legiswatch.sources.utah_glen import UtahGlenAdapter, normalize_bill


def _bill(number, title, year="2025", **extra):
    return {
        "bill": f"{number}S01",
        "billNumber": number,
        "generalSessionYear": year,
        "shortTitle": title,
        "lastAction": "Governor Signed",
        "lastActionDate": "2025-03-20",
        "sponsor": "Rep. Example",
        **extra,
    }


def _by_search(responses):
    def side_effect(url, params=None, **kwargs):
        return responses.get(params["search"], httpx.Response(200, json={"bills": []}))
    return side_effect


class TestUtahGlenAdapter:
    def test_search_terms(self):
        with patch(
            "legiswatch.sources.utah_glen.httpx.get",
            return_value=httpx.Response(200, json={"bills": []}),
        ) as mock_get:
            UtahGlenAdapter().fetch(SourceFetchParams())
            UtahGlenAdapter().fetch(SourceFetchParams(include_tribal=True))

        searches = [c.kwargs["params"]["search"] for c in mock_get.call_args_list]
        assert searches == [
            "landlord", "tenant", "eviction",
            "landlord", "tenant", "eviction", "native american", "indian",
        ]

    def test_normalizes_and_dedups(self):
        bill = _bill("HB0185", "Landlord and Tenant Amendments")
        responses = {
            "landlord": httpx.Response(200, json={"bills": [bill, _bill("SB0002", "Budget Act")]}),
            "tenant": httpx.Response(200, json={"bills": [bill]}),
        }
        with patch("legiswatch.sources.utah_glen.httpx.get", side_effect=_by_search(responses)):
            result = UtahGlenAdapter().fetch(SourceFetchParams())

        assert len(result.items) == 1
        item = result.items[0]
        assert item.cross_ref_key == "UT-HB0185-2025"
        assert item.url == "https://le.utah.gov/~2025/bills/static/HB0185.html"
        assert item.jurisdiction.state == "UT"
        assert item.status == "Governor Signed"
        assert item.topics == ("landlord_tenant",)

    def test_api_error_field_reported(self):
        responses = {"tenant": httpx.Response(200, json={"error": "search unavailable"})}
        with patch("legiswatch.sources.utah_glen.httpx.get", side_effect=_by_search(responses)):
            result = UtahGlenAdapter().fetch(SourceFetchParams())
        assert result.errors == ['Utah GLEN error for "tenant": search unavailable']

    def test_server_error_on_one_term_keeps_others(self):
        responses = {
            "landlord": httpx.Response(500),
            "eviction": httpx.Response(200, json={"bills": [_bill("HB0099", "Eviction Expungement")]}),
        }
        with patch("legiswatch.sources.utah_glen.httpx.get", side_effect=_by_search(responses)):
            result = UtahGlenAdapter().fetch(SourceFetchParams())
        assert [i.source_key for i in result.items] == ["HB0099S01"]
        assert result.errors == ['Utah GLEN error for "landlord": 500']


def test_tribal_bill_topics():
    item = normalize_bill(_bill("HB0300", "Tribal Housing Authority Amendments"))
    assert item.topics == ("nahasda_core", "tribal_adjacent", "landlord_tenant")
