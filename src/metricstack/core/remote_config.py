"""
Config response pipeline.

Builds the fixed-shape configuration object handed back to clients and
encodes it under the server key.
"""

from typing import Any, Dict, Optional

import structlog

from ..config import RemoteConfigSettings
from .codec import CodecError, decode_payload, encode_payload
from .limiter import now_ms
from .metrics import MetricsCollector

logger = structlog.get_logger(__name__)


class ConfigResponsePipeline:
    """
    Serves obfuscated configuration blobs.

    The client's own config token is decoded for diagnostics only; it does
    not influence the response.
    """

    def __init__(
        self,
        settings: RemoteConfigSettings,
        server_key: str,
        config_request_key: str,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.settings = settings
        self.server_key = server_key
        self.config_request_key = config_request_key
        self.metrics = metrics

    def read_client_config(self, config_token: str) -> Dict[str, Any]:
        """Decode the client's config token, falling back to an empty config."""
        try:
            client_config = decode_payload(config_token, self.config_request_key)
        except CodecError as e:
            logger.debug("Client config token not decodable", error=str(e))
            return {}
        if not isinstance(client_config, dict):
            return {}
        return client_config

    def build_payload(self) -> Dict[str, Any]:
        """Fixed-shape server configuration."""
        now = now_ms()
        return {
            "id": self.settings.config_id,
            "tasks": list(self.settings.tasks),
            "concurrency": self.settings.concurrency,
            "background_check": self.settings.background_check,
            "wl": self.settings.wl,
            "flush_interval": self.settings.flush_interval_ms,
            "t": {"t1": now, "t2": now + self.settings.t2_offset_ms},
        }

    def respond(self, version_token: str, config_token: str) -> str:
        """Return the encoded configuration token for a lookup request."""
        client_config = self.read_client_config(config_token)
        token = encode_payload(self.build_payload(), self.server_key)

        logger.debug(
            "Config response built",
            version_token=version_token,
            client_config_keys=sorted(client_config.keys()),
        )
        if self.metrics:
            self.metrics.record_config_response(bool(client_config))
        return token
