"""
Tests for the config response pipeline.
"""

from unittest.mock import patch

from metricstack.config import RemoteConfigSettings
from metricstack.core.codec import decode_payload, encode_payload
from metricstack.core.metrics import MetricsCollector
from metricstack.core.remote_config import ConfigResponsePipeline


def make_pipeline(**overrides) -> ConfigResponsePipeline:
    return ConfigResponsePipeline(
        settings=RemoteConfigSettings(),
        server_key=overrides.get("server_key", "calypso"),
        config_request_key=overrides.get("config_request_key", "calypso"),
        metrics=overrides.get("metrics"),
    )


class TestConfigPayload:
    """Test the fixed-shape configuration object."""

    def test_defaults(self) -> None:
        with patch("time.time", return_value=1700000000.0):
            payload = make_pipeline().build_payload()

        assert payload == {
            "id": "EpXo90y2oMhQ5e43WrYP",
            "tasks": [],
            "concurrency": 4,
            "background_check": True,
            "wl": False,
            "flush_interval": 11000,
            "t": {"t1": 1700000000000, "t2": 1700000001000},
        }

    def test_configured_tasks_copied(self) -> None:
        settings = RemoteConfigSettings(tasks=[{"name": "favicon_ping"}], concurrency=2)
        pipeline = ConfigResponsePipeline(settings, server_key="s", config_request_key="c")

        payload = pipeline.build_payload()
        payload["tasks"].append({"name": "other"})

        assert settings.tasks == [{"name": "favicon_ping"}]
        assert payload["concurrency"] == 2


class TestRespond:
    """Test the encoded response."""

    def test_response_decodes_under_server_key(self) -> None:
        token = make_pipeline(server_key="outbound").respond("L7ip", "anything")

        config = decode_payload(token, "outbound")
        assert config["id"] == "EpXo90y2oMhQ5e43WrYP"
        assert config["t"]["t2"] - config["t"]["t1"] == 1000

    def test_client_config_does_not_change_response_shape(self) -> None:
        pipeline = make_pipeline()
        client_token = encode_payload({"concurrency": 99, "id": "mine"}, "calypso")

        config = decode_payload(pipeline.respond("L7ip", client_token), "calypso")
        assert config["concurrency"] == 4
        assert config["id"] == "EpXo90y2oMhQ5e43WrYP"

    def test_metrics_distinguish_decodable_client_config(self) -> None:
        metrics = MetricsCollector()
        pipeline = make_pipeline(metrics=metrics)

        pipeline.respond("v", encode_payload({"a": 1}, "calypso"))
        pipeline.respond("v", "%%%")

        assert metrics.registry.get_sample_value("config_responses_total", {"client_config": "decoded"}) == 1.0
        assert metrics.registry.get_sample_value("config_responses_total", {"client_config": "undecodable"}) == 1.0


class TestReadClientConfig:
    """The client config token is best effort."""

    def test_decodes_with_request_key(self) -> None:
        pipeline = make_pipeline(config_request_key="peek")
        assert pipeline.read_client_config(encode_payload({"a": 1}, "peek")) == {"a": 1}

    def test_undecodable_falls_back_to_empty(self) -> None:
        pipeline = make_pipeline()
        assert pipeline.read_client_config("not base64!!") == {}
        assert pipeline.read_client_config(encode_payload([1, 2], "calypso")) == {}
