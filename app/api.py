"""HTTP route definitions for the service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import PlainTextResponse
from starlette.requests import ClientDisconnect

from services.decoder import DecodeError, decode_measurement, resolve_sensor_id
from services.handoff import QueueClosed
from services.pipeline import IngestPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pipeline(request: Request) -> IngestPipeline:
    return request.app.state.pipeline


@router.post(
    "/sensors/{sensor_path}/measures",
    status_code=status.HTTP_200_OK,
    response_class=Response,
    summary="Accept one measurement pushed by a sensor.",
)
async def submit_measures(
    sensor_path: str,
    request: Request,
    pipeline: IngestPipeline = Depends(get_pipeline),
) -> Response:
    sensor_id = resolve_sensor_id(sensor_path)

    try:
        body = await request.body()
    except ClientDisconnect as exc:
        logger.error(
            "cannot read body",
            extra={"op": "api.submit_measures", "sensor_id": sensor_id, "error": repr(exc)},
        )
        return PlainTextResponse("cannot read body", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        point = decode_measurement(body, sensor_id)
    except DecodeError as exc:
        logger.error(
            "failed to unmarshal",
            extra={"op": "api.submit_measures", "sensor_id": sensor_id, "reason": str(exc)},
        )
        return PlainTextResponse("failed to unmarshal", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        await pipeline.submit(point)
    except QueueClosed:
        return PlainTextResponse(
            "service is shutting down", status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )
    return Response(status_code=status.HTTP_200_OK)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(pipeline: IngestPipeline = Depends(get_pipeline)) -> dict[str, str]:
    return {"status": "ok", "state": pipeline.state.value}
