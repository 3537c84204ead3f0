"""Feature service import API.

Field mapping editor, document import, bounding-box queries against an
ArcGIS feature service, debounced re-query on map move, and read access to
the entities created so far.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from pydantic import BaseModel, Field

from esri_import.errors import ServiceFetchError
from esri_import.esri_json import load_collection
from esri_import.query import BBox
from esri_service.session import ImportSession

router = APIRouter(prefix="/api/esri", tags=["esri"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class FieldMappingUpdate(BaseModel):
    """Source field -> tag key entries; an empty tag key removes the entry."""
    mapping: dict[str, str]


class QueryRequest(BaseModel):
    """Query the feature service for a bounding box."""
    bbox: list[float] = Field(min_length=4, max_length=4)  # [min_lon, min_lat, max_lon, max_lat]
    url: Optional[str] = None
    force: bool = False


class MoveRequest(BaseModel):
    """The map viewport changed."""
    bbox: list[float] = Field(min_length=4, max_length=4)


class LayerUpdate(BaseModel):
    enabled: bool


def _get_session(request: Request) -> ImportSession:
    return request.app.state.import_session


# ---------------------------------------------------------------------------
# Field mapping
# ---------------------------------------------------------------------------

@router.get("/fields")
async def get_fields(request: Request):
    """Current mapping plus one row per field of the loaded data."""
    session = _get_session(request)
    return {
        "mapping": session.mapper.as_dict(),
        "fields": session.layer.field_rows(session.mapper),
    }


@router.put("/fields")
async def update_fields(body: FieldMappingUpdate, request: Request):
    session = _get_session(request)
    session.mapper.update(body.mapping)
    return {"mapping": session.mapper.as_dict()}


@router.delete("/fields")
async def reset_fields(request: Request):
    session = _get_session(request)
    session.mapper.reset()
    return {"mapping": {}}


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

@router.post("/import")
async def import_document(doc: dict[str, Any], request: Request):
    """Import a GeoJSON FeatureCollection or an ESRI JSON feature set."""
    if not isinstance(doc.get("features"), list):
        raise HTTPException(status_code=400, detail="Document has no features list")
    collection = load_collection(doc)
    report = await run_in_threadpool(_get_session(request).import_collection, collection)
    return report.to_dict()


@router.post("/query")
async def query_service(body: QueryRequest, request: Request):
    """Fetch the features inside ``bbox`` from the service and import them."""
    session = _get_session(request)
    if body.url:
        session.set_service(body.url)
    if session.service is None:
        raise HTTPException(status_code=400, detail="No feature service URL configured")

    try:
        report = await session.query_async(BBox.from_list(body.bbox), force=body.force)
    except ServiceFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if report is None:
        return {"unchanged": True}
    return {"unchanged": False, **report.to_dict()}


@router.post("/move")
async def map_moved(body: MoveRequest, request: Request):
    """Schedule a debounced re-query of the service for the new viewport."""
    session = _get_session(request)
    if session.service is None:
        raise HTTPException(status_code=409, detail="No feature service to re-query")
    session.on_move(BBox.from_list(body.bbox))
    return {"scheduled": True, "delay": session.debouncer.delay}


@router.post("/reset")
async def reset_ledger(request: Request):
    """Forget imported source ids so the next query imports everything again."""
    session = _get_session(request)
    await run_in_threadpool(session.reset)
    return {"ledger": len(session.ledger)}


# ---------------------------------------------------------------------------
# Layer state and results
# ---------------------------------------------------------------------------

@router.get("/layer")
async def get_layer(request: Request):
    session = _get_session(request)
    layer = session.layer
    return {
        "enabled": layer.enabled,
        "has_data": layer.has_data,
        "features": len(layer.collection.get("features", [])) if layer.has_data else 0,
        "service_url": session.service.url if session.service else None,
        "ledger": len(session.ledger),
    }


@router.put("/layer")
async def update_layer(body: LayerUpdate, request: Request):
    session = _get_session(request)
    session.layer.enabled = body.enabled
    logger.info(f"Import layer {'enabled' if body.enabled else 'disabled'}")
    return {"enabled": session.layer.enabled}


@router.get("/extent")
async def get_extent(
    request: Request,
    viewport: Optional[str] = Query(None, description="min_lon,min_lat,max_lon,max_lat"),
):
    """Extent and center of the loaded data, for zoom-to-data.

    With a viewport, ``needs_fit`` tells whether none of the data is visible.
    """
    layer = _get_session(request).layer
    extent = layer.extent()
    if extent is None:
        raise HTTPException(status_code=404, detail="No data loaded")

    result = extent.to_dict()
    if viewport:
        try:
            bbox = BBox.from_list(viewport.split(","))
        except ValueError:
            raise HTTPException(status_code=400, detail="viewport must be 4 comma-separated numbers")
        result["needs_fit"] = layer.needs_fit(bbox)
    return result


@router.get("/entities")
async def list_entities(request: Request):
    """All entities created by imports, in commit order."""
    return [e.to_dict() for e in _get_session(request).host.entities()]


@router.get("/report")
async def last_report(request: Request):
    report = _get_session(request).last_report
    if report is None:
        raise HTTPException(status_code=404, detail="No import has run yet")
    return report.to_dict()
