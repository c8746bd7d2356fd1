"""Tests for addresses and discovery results."""

import pytest

from replicapool.endpoint import (
    DiscoveryResult,
    Endpoint,
    SentinelAddress,
    parse_sentinels,
)
from replicapool.exceptions import DiscoveryError


class TestEndpoint:
    def test_equality_ignores_database(self) -> None:
        assert Endpoint("10.0.0.5", 6380, 0) == Endpoint("10.0.0.5", 6380, 3)
        assert Endpoint("10.0.0.5", 6380) != Endpoint("10.0.0.5", 6381)

    def test_deduplicates_in_set(self) -> None:
        endpoints = {Endpoint("10.0.0.5", 6380, 0), Endpoint("10.0.0.5", 6380, 1)}
        assert len(endpoints) == 1

    def test_immutable(self) -> None:
        endpoint = Endpoint("10.0.0.5", 6380)
        with pytest.raises(AttributeError):
            endpoint.port = 6381  # type: ignore[misc]

    def test_url(self) -> None:
        endpoint = Endpoint("10.0.0.5", 6380, 2)
        assert endpoint.address == "10.0.0.5:6380"
        assert endpoint.url == "redis://10.0.0.5:6380/2"
        assert str(endpoint) == "10.0.0.5:6380"

    def test_ipv6_address(self) -> None:
        assert Endpoint("::1", 6380).address == "[::1]:6380"

    def test_from_record(self) -> None:
        endpoint = Endpoint.from_record({"ip": "10.0.0.5", "port": "6380"}, database=4)
        assert endpoint == Endpoint("10.0.0.5", 6380)
        assert endpoint.port == 6380
        assert endpoint.database == 4

    def test_from_record_int_port(self) -> None:
        assert Endpoint.from_record({"ip": "10.0.0.5", "port": 6380}).port == 6380

    @pytest.mark.parametrize(
        "record",
        [
            {"port": "6380"},
            {"ip": "10.0.0.5"},
            {"ip": "10.0.0.5", "port": "redis"},
            {"ip": "10.0.0.5", "port": "70000"},
            {"ip": "", "port": "6380"},
            "10.0.0.5:6380",
        ],
    )
    def test_from_record_malformed(self, record: object) -> None:
        with pytest.raises(DiscoveryError, match="Malformed replica record"):
            Endpoint.from_record(record)  # type: ignore[arg-type]


class TestSentinelAddress:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("sentinel-1:26380", SentinelAddress("sentinel-1", 26380)),
            ("sentinel-1", SentinelAddress("sentinel-1", 26379)),
            ("redis://sentinel-1:26380", SentinelAddress("sentinel-1", 26380)),
            ("[::1]:26380", SentinelAddress("::1", 26380)),
            ("[::1]", SentinelAddress("::1", 26379)),
            ("fe80::1", SentinelAddress("fe80::1", 26379)),
            (" 10.0.0.1:26379 ", SentinelAddress("10.0.0.1", 26379)),
        ],
    )
    def test_parse(self, text: str, expected: SentinelAddress) -> None:
        assert SentinelAddress.parse(text) == expected

    @pytest.mark.parametrize("text", ["", ":26379", "host:port", "host:0", "[::1", "[::1]x"])
    def test_parse_invalid(self, text: str) -> None:
        with pytest.raises(ValueError):
            SentinelAddress.parse(text)

    def test_str(self) -> None:
        assert str(SentinelAddress("10.0.0.1", 26379)) == "10.0.0.1:26379"
        assert str(SentinelAddress("::1", 26379)) == "[::1]:26379"


class TestParseSentinels:
    def test_sorted_and_deduplicated(self) -> None:
        sentinels = parse_sentinels(
            {"c:26379", "a:26379", "b:26379", "redis://a:26379"}
        )
        assert [str(s) for s in sentinels] == ["a:26379", "b:26379", "c:26379"]

    def test_mixed_inputs(self) -> None:
        sentinels = parse_sentinels(
            [("b", 26379), SentinelAddress("a", 26380), "a:26379"]
        )
        assert sentinels == [
            SentinelAddress("a", 26379),
            SentinelAddress("a", 26380),
            SentinelAddress("b", 26379),
        ]

    def test_empty(self) -> None:
        assert parse_sentinels([]) == []


class TestDiscoveryResult:
    def test_empty(self) -> None:
        result = DiscoveryResult()
        assert result.choose() is None
        assert not result.is_local

    def test_local_selection_wins(self) -> None:
        local = Endpoint("10.0.0.9", 6380)
        result = DiscoveryResult(
            local, frozenset({Endpoint("10.0.0.1", 6380)}), "10.0.0.9"
        )
        assert result.is_local
        assert result.choose() == local

    def test_choose_from_candidates(self) -> None:
        result = DiscoveryResult(
            None,
            frozenset({Endpoint("10.0.0.6", 6380), Endpoint("10.0.0.5", 6381)}),
            "10.0.0.9",
        )
        assert result.choose() == Endpoint("10.0.0.5", 6381)
        assert result.choose() == result.choose()
