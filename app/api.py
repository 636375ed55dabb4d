"""HTTP route definitions for the service."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    HealthResponse,
    HistoryRecordOut,
    IngestRequest,
    IngestResponse,
    ReadingOut,
    RoomStatsOut,
)
from errors import InvalidPayload, RoomNotFound, StoreUnavailable
from models.records import Reading
from services.ingestion import IngestionCoordinator, build_default_coordinator
from services.query import QueryService, build_default_query

router = APIRouter()


def get_coordinator() -> IngestionCoordinator:
    return build_default_coordinator()


def get_query() -> QueryService:
    return build_default_query()


def _reading_out(reading: Reading) -> ReadingOut:
    return ReadingOut.model_validate(asdict(reading))


def _store_failure(detail: str, exc: StoreUnavailable) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{detail}: {exc}",
    )


@router.post(
    "/api/sensor-data",
    response_model=IngestResponse,
    summary="Accept one sensor reading.",
)
async def ingest_reading(
    payload: IngestRequest,
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> IngestResponse:
    try:
        result = coordinator.ingest(payload)
    except InvalidPayload as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return IngestResponse(accepted=result.accepted, message=result.message)


@router.get(
    "/api/rooms/{room_id}",
    response_model=ReadingOut,
    summary="Latest reading for a room, served from memory.",
)
async def get_room(
    room_id: str,
    query: QueryService = Depends(get_query),
) -> ReadingOut:
    try:
        reading = query.current(room_id)
    except RoomNotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return _reading_out(reading)


@router.get(
    "/api/rooms",
    response_model=Dict[str, ReadingOut],
    summary="Latest reading for every room that has reported.",
)
async def list_rooms(query: QueryService = Depends(get_query)) -> Dict[str, ReadingOut]:
    return {room_id: _reading_out(reading) for room_id, reading in query.list_current().items()}


@router.get(
    "/api/history/{room_id}",
    response_model=List[HistoryRecordOut],
    summary="Stored readings for a room within the lookback window, oldest first.",
)
def get_history(
    room_id: str,
    hours: Optional[int] = Query(None, description="Lookback window in hours (default 24)."),
    query: QueryService = Depends(get_query),
) -> List[HistoryRecordOut]:
    try:
        records = query.history(room_id, hours=hours)
    except StoreUnavailable as exc:
        raise _store_failure("Failed to fetch history", exc) from exc
    return [HistoryRecordOut.model_validate(asdict(record)) for record in records]


@router.get(
    "/api/stats/{room_id}",
    summary="Aggregate statistics for a room within the lookback window.",
)
def get_stats(
    room_id: str,
    hours: Optional[int] = Query(None, description="Lookback window in hours (default 24)."),
    query: QueryService = Depends(get_query),
) -> Dict[str, Any]:
    try:
        stats = query.stats(room_id, hours=hours)
    except StoreUnavailable as exc:
        raise _store_failure("Failed to fetch stats", exc) from exc
    if stats is None:
        return {}
    return RoomStatsOut.model_validate(asdict(stats)).model_dump(by_alias=True)


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(query: QueryService = Depends(get_query)) -> HealthResponse:
    return HealthResponse.model_validate(asdict(query.health()))


@router.get(
    "/",
    summary="Root endpoint points at health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "online", "detail": "See /api/health for service status."}
