"""
Telemetry API endpoints.

POST /api/metrics - Ingest a telemetry envelope (JSON or codec token)
GET  /api/metrics - Fetch the obfuscated client configuration
"""

import uuid
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ..core.codec import loads_json
from ..core.limiter import resolve_client_identity
from ..core.pipeline import IngestionPipeline
from ..core.remote_config import ConfigResponsePipeline
from ..models.responses import AcceptedResponse, ErrorResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


async def get_ingestion_pipeline(request: Request) -> IngestionPipeline:
    """Dependency to get the ingestion pipeline from app state."""
    return request.app.state.ingestion_pipeline


async def get_config_pipeline(request: Request) -> ConfigResponsePipeline:
    """Dependency to get the config response pipeline from app state."""
    return request.app.state.config_pipeline


def get_client_identity(request: Request) -> str:
    """Forwarded-for first hop, else the peer address."""
    peer = request.client.host if request.client else None
    return resolve_client_identity(request.headers.get("x-forwarded-for"), peer)


def parse_request_body(raw: bytes, content_type: str) -> Any:
    """
    Interpret the raw body.

    JSON content is parsed; everything else, including JSON that does not
    parse, is handed on as text for codec decoding.
    """
    text = raw.decode("utf-8", errors="replace")
    if "json" in content_type.lower():
        try:
            return loads_json(text)
        except ValueError:
            return text
    return text


@router.post(
    "/api/metrics",
    response_model=AcceptedResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse, "description": "Undecodable, malformed or invalid payload"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
    summary="Ingest telemetry envelope",
    description="""
    Ingest one client telemetry envelope.

    **Processing Pipeline:**
    1. Admission check per source identity
    2. Codec decode for text bodies, keyed by `v`
    3. JSON parse
    4. Schema validation (unknown properties pruned)
    5. Enrichment (receivedAt, clientV, meta.clientIp)
    6. Store hand-off
    7. Acknowledgment (201 response)
    """,
)
async def ingest_telemetry(
    request: Request,
    v: Optional[str] = Query(None, description="Client version token, also the codec key"),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
) -> JSONResponse:
    """
    Ingest a telemetry envelope.
    """
    request_id = str(uuid.uuid4())
    client_identity = get_client_identity(request)
    body = parse_request_body(await request.body(), request.headers.get("content-type", ""))

    logger.debug(
        "Processing telemetry request",
        request_id=request_id,
        client_identity=client_identity,
        body_kind="text" if isinstance(body, str) else "json",
        has_version=bool(v),
    )

    result = await pipeline.ingest(
        body=body,
        version_token=v,
        client_identity=client_identity,
        request_id=request_id,
    )

    logger.debug(
        "Telemetry request completed",
        request_id=request_id,
        stored=result.stored,
        processing_time_ms=round(result.processing_time_ms, 3),
    )

    return JSONResponse(status_code=201, content=AcceptedResponse().model_dump())


@router.get(
    "/api/metrics",
    response_class=PlainTextResponse,
    responses={400: {"description": "Missing parameters"}},
    summary="Fetch client configuration",
    description="""
    Returns the client configuration as a codec token (plain text).

    Both `v` (version token) and `f` (client config token) are required.
    """,
)
async def get_client_config(
    v: Optional[str] = Query(None, description="Client version token"),
    f: Optional[str] = Query(None, description="Opaque client config token"),
    pipeline: ConfigResponsePipeline = Depends(get_config_pipeline),
) -> PlainTextResponse:
    """
    Config lookup for clients.
    """
    if not v or not f:
        return PlainTextResponse("Missing parameters", status_code=400)

    return PlainTextResponse(pipeline.respond(version_token=v, config_token=f))
