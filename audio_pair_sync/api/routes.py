"""
API routes for Audio Pair Sync
"""

import asyncio
import json
from typing import Any, Dict, List, Set

from fastapi import APIRouter, Body, Depends, HTTPException, Request, WebSocket
from loguru import logger

from ..bus import BusControlListener
from ..errors import (
    CollaboratorError,
    ConflictError,
    NotFoundError,
    PairSyncError,
    ValidationError,
)
from ..sync import PairService
from .models import (
    AssociationRequest,
    AssociationResponse,
    ImportResult,
    PairResponse,
    PairStateResponse,
    PairTestResult,
    ServiceStatus,
    StatisticsResponse,
)

router = APIRouter(prefix="/api/v1")


class DeltaHub:
    """Fans bus deltas out to connected WebSocket clients"""

    def __init__(self):
        self.clients: List[WebSocket] = []
        self._tasks: Set[asyncio.Task] = set()

    def push(self, delta: dict):
        if not self.clients:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, dropping WebSocket broadcast")
            return
        task = loop.create_task(self.broadcast(delta))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def broadcast(self, delta: dict):
        """Broadcast a delta to all connected clients"""
        for client in list(self.clients):
            try:
                await client.send_json(delta)
            except Exception as e:
                logger.error(f"Error broadcasting to client: {e}")
                if client in self.clients:
                    self.clients.remove(client)


async def get_service(request: Request) -> PairService:
    """Get the PairService instance"""
    return request.app.state.service


async def get_control(request: Request) -> BusControlListener:
    """Get the bus control listener"""
    return request.app.state.control


def _http_error(error: PairSyncError) -> HTTPException:
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(
            status_code=409,
            detail={"error": str(error), "conflicts": error.conflicts},
        )
    if isinstance(error, CollaboratorError):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Push bus deltas to the client; inbound text is treated as bus deltas"""
    hub: DeltaHub = websocket.app.state.hub
    control: BusControlListener = websocket.app.state.control
    await websocket.accept()
    hub.clients.append(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                control.handle_delta(json.loads(data))
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed bus delta from WebSocket client")
    except Exception as e:
        logger.debug(f"WebSocket closed: {e}")
    finally:
        if websocket in hub.clients:
            hub.clients.remove(websocket)


@router.get("/status")
async def get_status(service: PairService = Depends(get_service)) -> ServiceStatus:
    """Get service status"""
    try:
        diagnostics = service.diagnostics()
        collaborators = diagnostics["collaborators"]
        return ServiceStatus(
            running=service.router.is_running,
            totalPairs=diagnostics["registry"]["totalPairs"],
            enabledPairs=diagnostics["registry"]["enabledPairs"],
            trackedDevices={
                name: len(info.get("trackedDevices", []))
                for name, info in collaborators.items()
                if "trackedDevices" in info
            },
        )
    except Exception as e:
        logger.error(f"Error getting status: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/pairs", response_model=List[PairResponse])
async def list_pairs(service: PairService = Depends(get_service)):
    """List all device pairs"""
    return service.list_pairs()


@router.post("/pairs", status_code=201, response_model=PairResponse)
async def create_pair(
    config: Dict[str, Any] = Body(...),
    service: PairService = Depends(get_service),
):
    """Create a device pair"""
    try:
        return service.create_pair(config)
    except PairSyncError as e:
        logger.warning(f"Rejected pair creation: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error creating pair: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/pairs/validate", response_model=AssociationResponse)
async def validate_association(
    request: AssociationRequest, service: PairService = Depends(get_service)
):
    """Check a source/amp association against the enabled pairs"""
    result = service.validate_association(
        request.source_device_ref, request.amp_device_ref, ignore=request.ignore
    )
    return result.to_dict()


@router.get("/pairs/{name}", response_model=PairResponse)
async def get_pair(name: str, service: PairService = Depends(get_service)):
    """Get one device pair"""
    try:
        return service.get_pair(name)
    except PairSyncError as e:
        raise _http_error(e)


@router.patch("/pairs/{name}", response_model=PairResponse)
async def update_pair(
    name: str,
    fields: Dict[str, Any] = Body(...),
    service: PairService = Depends(get_service),
):
    """Update fields of a device pair"""
    try:
        return service.update_pair(name, fields)
    except PairSyncError as e:
        logger.warning(f"Rejected update of {name}: {e}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error updating pair: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/pairs/{name}")
async def delete_pair(name: str, service: PairService = Depends(get_service)):
    """Delete a device pair"""
    try:
        service.delete_pair(name)
        return {"status": "ok"}
    except PairSyncError as e:
        raise _http_error(e)


@router.get("/pairs/{name}/state", response_model=PairStateResponse)
async def get_pair_state(name: str, service: PairService = Depends(get_service)):
    """Get the computed sync state of a pair"""
    try:
        return {"name": name, "state": service.pair_state(name)}
    except PairSyncError as e:
        raise _http_error(e)


@router.post("/pairs/{name}/test", response_model=PairTestResult)
async def test_pair(name: str, service: PairService = Depends(get_service)):
    """Probe both devices of a pair"""
    try:
        return await service.test_pair(name)
    except PairSyncError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error testing pair {name}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/overview", response_model=StatisticsResponse)
async def get_overview(service: PairService = Depends(get_service)):
    """Get pair statistics"""
    return service.statistics()


@router.get("/diagnostics")
async def get_diagnostics(service: PairService = Depends(get_service)) -> Dict:
    """Get diagnostics for the registry, router and device clients"""
    try:
        return service.diagnostics()
    except Exception as e:
        logger.error(f"Error getting diagnostics: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/export")
async def export_config(service: PairService = Depends(get_service)) -> Dict:
    """Export the pair configuration"""
    return service.export_config()


@router.post("/import", response_model=ImportResult)
async def import_config(
    payload: Any = Body(...), service: PairService = Depends(get_service)
):
    """Replace the pair configuration"""
    try:
        return service.import_config(payload)
    except PairSyncError as e:
        logger.warning(f"Rejected configuration import: {e}")
        raise _http_error(e)


@router.post("/bus/delta")
async def post_bus_delta(
    delta: Dict[str, Any] = Body(...),
    control: BusControlListener = Depends(get_control),
):
    """Feed a bus delta message to the control listener"""
    return {"accepted": control.handle_delta(delta)}
