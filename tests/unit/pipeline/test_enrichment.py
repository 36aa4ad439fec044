"""
Tests for server-side enrichment.
"""

import copy

from metricstack.core.enrichment import enrich


class TestEnrichment:
    """Test server-observed metadata stamping."""

    def test_sets_server_fields(self) -> None:
        envelope = {"timestamp": 1, "env": {"userAgent": "x"}}
        enriched = enrich(envelope, received_at=1700000000123, client_version="L7ip", client_identity="203.0.113.7")

        assert enriched["receivedAt"] == 1700000000123
        assert enriched["clientV"] == "L7ip"
        assert enriched["meta"] == {"clientIp": "203.0.113.7"}

    def test_missing_version_is_null(self) -> None:
        envelope = {"timestamp": 1, "env": {"userAgent": "x"}}
        assert enrich(envelope, 1, None, "ip")["clientV"] is None
        assert enrich(envelope, 1, "", "ip")["clientV"] is None

    def test_overwrites_client_values(self) -> None:
        envelope = {"timestamp": 1, "env": {"userAgent": "x"}, "receivedAt": 5, "clientV": "forged"}
        enriched = enrich(envelope, received_at=10, client_version=None, client_identity="ip")
        assert enriched["receivedAt"] == 10
        assert enriched["clientV"] is None

    def test_existing_meta_preserved(self) -> None:
        envelope = {"timestamp": 1, "env": {"userAgent": "x"}, "meta": {"build": "abc", "clientIp": "spoofed"}}
        enriched = enrich(envelope, 1, None, "203.0.113.7")
        assert enriched["meta"] == {"build": "abc", "clientIp": "203.0.113.7"}

    def test_input_untouched(self) -> None:
        envelope = {"timestamp": 1, "env": {"userAgent": "x"}, "meta": {"build": "abc"}}
        snapshot = copy.deepcopy(envelope)
        enrich(envelope, 1, "v", "ip")
        assert envelope == snapshot

    def test_idempotent(self) -> None:
        envelope = {"timestamp": 1, "env": {"userAgent": "x"}}
        once = enrich(envelope, 7, "v", "ip")
        twice = enrich(once, 7, "v", "ip")
        assert once == twice
