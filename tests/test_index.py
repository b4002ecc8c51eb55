"""Tests for CredentialIndex lookup and search ranking."""

from __future__ import annotations

import pytest

from hostvault.errors import NotFound
from hostvault.vault.index import CredentialIndex


@pytest.fixture
def records(make_record):
    return [
        make_record("db-prod", "10.0.0.2", description="web cache"),
        make_record("web-prod", "10.0.0.1"),
        make_record("bastion", "web.example.com"),
        make_record("staging", "10.0.1.1"),
    ]


class TestLookup:
    def test_case_insensitive(self, records):
        index = CredentialIndex(records)
        assert index.lookup("WEB-Prod") is records[1]

    def test_exact_only(self, records):
        with pytest.raises(NotFound):
            CredentialIndex(records).lookup("web")

    def test_id_prefix(self, records):
        target = records[2]
        assert CredentialIndex(records).lookup(target.id[:8].upper()) is target
        assert CredentialIndex(records).lookup(target.id) is target

    def test_name_wins_over_id_prefix(self, make_record):
        other = make_record("x")
        named = make_record(other.id[:8])
        assert CredentialIndex([other, named]).lookup(other.id[:8]) is named

    def test_short_or_ambiguous_id_prefix(self, make_record):
        a = make_record("a", id="abcd0000-0000-4000-8000-000000000001")
        b = make_record("b", id="abcd0000-0000-4000-8000-000000000002")
        index = CredentialIndex([a, b])
        with pytest.raises(NotFound, match="matches 2"):
            index.lookup("abcd")
        with pytest.raises(NotFound):
            index.lookup("abc")
        assert index.lookup("abcd0000-0000-4000-8000-000000000002") is b


class TestSearch:
    def test_name_matches_rank_first(self, records):
        results = CredentialIndex(records).search("web")
        assert [r.name for r in results] == ["web-prod", "db-prod", "bastion"]

    def test_case_insensitive_substring(self, records):
        assert [r.name for r in CredentialIndex(records).search("PROD")] == [
            "db-prod",
            "web-prod",
        ]

    def test_host_match(self, records):
        assert [r.name for r in CredentialIndex(records).search("10.0.1")] == ["staging"]

    def test_empty_query_returns_all_in_order(self, records):
        assert CredentialIndex(records).search("") == records

    def test_whitespace_query_is_a_substring(self, make_record):
        records = [make_record("web prod"), make_record("db")]
        assert CredentialIndex(records).search(" ") == [records[0]]
        assert CredentialIndex(records).search("   ") == []

    def test_tag_match_ranks_with_host(self, make_record):
        records = [make_record("db", tags=["eu-west"]), make_record("eu-web")]
        assert [r.name for r in CredentialIndex(records).search("eu")] == ["eu-web", "db"]

    def test_no_match(self, records):
        assert CredentialIndex(records).search("nothing") == []
