"""Tests for legiswatch.sources.congress_gov — Congress.gov adapter."""

from __future__ import annotations

from unittest.mock import patch

import httpx

from legiswatch.sources.congress_gov import (
    CongressGovAdapter,
    current_congress,
    normalize_bill,
)
from legiswatch.sources.models import SourceFetchParams


def _bill(number, title, bill_type="HR", congress=119, **extra):
    return {
        "congress": congress,
        "type": bill_type,
        "number": str(number),
        "title": title,
        "introducedDate": "2025-02-01",
        "updateDate": "2025-03-01",
        "latestAction": {"text": "Referred to the Committee on Financial Services."},
        **extra,
    }


def _by_query(responses):
    """side_effect for httpx.get that answers by the ``query`` param."""
    def side_effect(url, params=None, **kwargs):
        return responses[params["query"]]
    return side_effect


class TestCongressGovAdapter:
    def test_missing_key_reports_error_without_requests(self):
        adapter = CongressGovAdapter(api_key=None)
        with patch("legiswatch.sources.congress_gov.httpx.get") as mock_get:
            result = adapter.fetch(SourceFetchParams())
        assert result.items == []
        assert result.errors == ["CONGRESS_GOV_API_KEY not configured - skipping"]
        mock_get.assert_not_called()

    def test_fetches_and_normalizes_bills(self):
        adapter = CongressGovAdapter(api_key="k")
        bills = [
            _bill(1234, "Fair Housing Improvement Act"),
            _bill(55, "Highway Funding Act", bill_type="S"),
        ]
        responses = {
            "housing": httpx.Response(200, json={"bills": bills}),
            "landlord": httpx.Response(200, json={"bills": []}),
            "tenant": httpx.Response(200, json={"bills": []}),
        }
        with patch("legiswatch.sources.congress_gov.httpx.get", side_effect=_by_query(responses)):
            result = adapter.fetch(SourceFetchParams())

        assert result.errors == []
        assert len(result.items) == 1
        item = result.items[0]
        assert item.source == "congressGov"
        assert item.source_key == "119-HR1234"
        assert item.cross_ref_key == "CONGRESS-119-HR1234"
        assert item.jurisdiction.level == "federal"
        assert item.url == "https://www.congress.gov/bill/119th-congress/house-bill/1234"
        assert item.topics == ("hud_general", "landlord_tenant", "fair_housing")

    def test_tribal_terms_used_when_include_tribal(self):
        adapter = CongressGovAdapter(api_key="k")
        with patch(
            "legiswatch.sources.congress_gov.httpx.get",
            return_value=httpx.Response(200, json={"bills": []}),
        ) as mock_get:
            adapter.fetch(SourceFetchParams(include_tribal=True))

        queries = [call.kwargs["params"]["query"] for call in mock_get.call_args_list]
        assert queries == ["native american housing", "nahasda", "housing", "landlord"]

    def test_since_sets_from_date_time(self):
        adapter = CongressGovAdapter(api_key="k")
        with patch(
            "legiswatch.sources.congress_gov.httpx.get",
            return_value=httpx.Response(200, json={"bills": []}),
        ) as mock_get:
            adapter.fetch(SourceFetchParams(since="2025-05-01T12:00:00Z"))
        params = mock_get.call_args.kwargs["params"]
        assert params["fromDateTime"] == "2025-05-01T00:00:00Z"

    def test_server_error_on_one_term_keeps_other_terms(self):
        adapter = CongressGovAdapter(api_key="k")
        responses = {
            "housing": httpx.Response(200, json={"bills": [_bill(1, "Public Housing Repair Act")]}),
            "landlord": httpx.Response(500),
            "tenant": httpx.Response(200, json={"bills": [_bill(2, "Tenant Protection Act")]}),
        }
        with patch("legiswatch.sources.congress_gov.httpx.get", side_effect=_by_query(responses)):
            result = adapter.fetch(SourceFetchParams())

        assert [i.source_key for i in result.items] == ["119-HR1", "119-HR2"]
        assert result.errors == ['Congress.gov error for "landlord": 500']

    def test_transport_error_is_reported(self):
        adapter = CongressGovAdapter(api_key="k")
        with patch(
            "legiswatch.sources.congress_gov.httpx.get",
            side_effect=httpx.ConnectError("connection refused"),
        ):
            result = adapter.fetch(SourceFetchParams())
        assert len(result.errors) == 3
        assert all("fetch error" in e for e in result.errors)

    def test_same_bill_from_two_terms_appears_once(self):
        adapter = CongressGovAdapter(api_key="k")
        bill = _bill(7, "Landlord and Tenant Housing Act")
        with patch(
            "legiswatch.sources.congress_gov.httpx.get",
            return_value=httpx.Response(200, json={"bills": [bill]}),
        ):
            result = adapter.fetch(SourceFetchParams())
        assert len(result.items) == 1


def test_current_congress():
    assert current_congress(2025) == 119
    assert current_congress(2026) == 119
    assert current_congress(2027) == 120


def test_normalize_bill_nahasda_with_block_grant():
    item = normalize_bill(
        _bill(10, "NAHASDA Reauthorization and Indian Housing Block Grant Act", bill_type="S")
    )
    assert item.topics == ("nahasda_core", "ihbg", "hud_general", "landlord_tenant")
    assert item.url.endswith("/senate-bill/10")
