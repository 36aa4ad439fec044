"""
Server-side enrichment of validated envelopes.
"""

from typing import Any, Dict, Optional


def enrich(
    envelope: Dict[str, Any],
    received_at: int,
    client_version: Optional[str],
    client_identity: str,
) -> Dict[str, Any]:
    """
    Stamp server-observed facts onto an envelope.

    Returns a new dict; the input is left untouched. receivedAt and clientV
    always overwrite client-supplied values. An empty version token is
    stored as null.
    """
    enriched = dict(envelope)
    enriched["receivedAt"] = received_at
    enriched["clientV"] = client_version or None

    meta = dict(enriched.get("meta") or {})
    meta["clientIp"] = client_identity
    enriched["meta"] = meta

    return enriched
