"""
FastAPI router for the marketplace API.

Endpoints:
- GET  /mode                        - Current, preferred and fallback mode
- PUT  /mode                        - Select a mode explicitly
- GET  /gateway/health              - Probe the decryption gateway
- GET  /datasets                    - Active datasets
- GET  /datasets/{id}               - Single dataset
- POST /datasets                    - Upload a dataset
- POST /queries                     - Submit a query (optionally wait for the result)
- GET  /queries/{id}                - Single query
- POST /queries/{id}/wait           - Wait for a query result
- GET  /settlement?price=           - Provider/platform split of a price
- GET  /stats                       - Platform totals
- GET  /providers/{address}/summary - Provider totals
- GET  /buyers/{address}/queries    - Queries of a buyer

Every marketplace error is returned as:
    {"detail": {"error": "PriceTooLow", "message": "...", "detail": "..."}}
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..core.errors import MarketplaceError
from ..core.settlement import split_price
from ..core.types import ExecutionMode
from ..core.utils import parse_data_points, parse_ether
from ..runtime.session import Session


# Create router
router = APIRouter()

# Global session (set by create_marketplace_app)
_session: Session | None = None


def set_session(session: Session):
    """Set the session used by the API."""
    global _session
    _session = session


def get_session() -> Session:
    """Get the session."""
    if _session is None:
        raise RuntimeError("Session not initialized. Call set_session() first.")
    return _session


def _http_error(e: MarketplaceError) -> HTTPException:
    return HTTPException(
        status_code=e.status_code,
        detail={"error": e.kind, "message": e.user_message, "detail": str(e)},
    )


# === Request bodies ===


class ModeRequest(BaseModel):
    mode: ExecutionMode


class UploadRequest(BaseModel):
    """Dataset upload; values as a list or a comma-separated string."""
    name: str
    description: str = ""
    values: Optional[list[int]] = None
    data: Optional[str] = None
    price_wei: Optional[int] = None
    price_eth: Optional[str] = None


class QueryRequest(BaseModel):
    dataset_id: int
    query_type: str | int
    parameter: Optional[int] = None
    wait: bool = False


# === Mode ===


def _mode_state(session: Session) -> dict[str, Any]:
    return {
        "mode": session.mode.value,
        "is_auto_fallback": session.selector.is_auto_fallback,
        "preferred": session.selector.preferred_mode.value,
        "network": session.settings.network.name,
        "chain_id": session.settings.network.chain_id,
    }


@router.get("/mode")
async def get_mode(session: Session = Depends(get_session)) -> dict[str, Any]:
    return _mode_state(session)


@router.put("/mode")
async def put_mode(body: ModeRequest, session: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        await session.set_mode(body.mode)
    except MarketplaceError as e:
        raise _http_error(e)
    return _mode_state(session)


@router.get("/gateway/health")
async def gateway_health(session: Session = Depends(get_session)) -> dict[str, Any]:
    """Probe the gateway; in FHE mode a failure switches to mock."""
    healthy = await session.check_gateway()
    return {"healthy": healthy, "gateway_url": session.gateway.gateway_url, **_mode_state(session)}


# === Datasets ===


@router.get("/datasets")
async def list_datasets(session: Session = Depends(get_session)) -> list[dict[str, Any]]:
    try:
        context = await session.resolve()
        datasets = []
        for dataset_id in await context.client.list_active_dataset_ids():
            datasets.append((await context.client.get_dataset(dataset_id)).model_dump())
    except MarketplaceError as e:
        raise _http_error(e)
    return datasets


@router.get("/datasets/{dataset_id}")
async def get_dataset(dataset_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        context = await session.resolve()
        dataset = await context.client.get_dataset(dataset_id)
    except MarketplaceError as e:
        raise _http_error(e)
    return dataset.model_dump()


@router.post("/datasets", status_code=201)
async def upload_dataset(body: UploadRequest, session: Session = Depends(get_session)) -> dict[str, Any]:
    """
    Upload a dataset.

    Example body:
    {"name": "Ages", "data": "100, 200, 150", "price_eth": "0.001"}
    """
    if body.price_wei is None and body.price_eth is None:
        raise HTTPException(status_code=400, detail={"error": "price_wei or price_eth is required"})
    if body.values is None and body.data is None:
        raise HTTPException(status_code=400, detail={"error": "values or data is required"})

    try:
        price = body.price_wei if body.price_wei is not None else parse_ether(body.price_eth)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": str(e)})

    try:
        values = body.values if body.values is not None else parse_data_points(body.data)
        manager = await session.lifecycle()
        result = await manager.upload_dataset(body.name, body.description, values, price)
    except MarketplaceError as e:
        raise _http_error(e)
    return result.model_dump(mode="json")


# === Queries ===


@router.post("/queries")
async def submit_query(body: QueryRequest, session: Session = Depends(get_session)) -> dict[str, Any]:
    """Submit a query; with ``wait`` the response carries the result."""
    try:
        manager = await session.lifecycle()
        if body.wait:
            outcome = await manager.run_query(body.dataset_id, body.query_type, body.parameter)
            return outcome.model_dump(mode="json")
        submission = await manager.submit_query(body.dataset_id, body.query_type, body.parameter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": str(e)})
    except MarketplaceError as e:
        raise _http_error(e)
    return submission.model_dump(mode="json")


@router.get("/queries/{query_id}")
async def get_query(query_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        context = await session.resolve()
        query = await context.client.get_query(query_id)
    except MarketplaceError as e:
        raise _http_error(e)
    return query.model_dump(mode="json")


@router.post("/queries/{query_id}/wait")
async def wait_for_query(query_id: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        manager = await session.lifecycle()
        outcome = await manager.wait_for_result(query_id)
    except MarketplaceError as e:
        raise _http_error(e)
    return outcome.model_dump(mode="json")


# === Settlement and statistics ===


@router.get("/settlement")
async def settlement(
    price: int = Query(..., ge=0, description="Query price in wei"),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    return split_price(price, session.settings.platform_fee_percent).model_dump()


@router.get("/stats")
async def platform_stats(session: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        context = await session.resolve()
        stats = await context.client.get_platform_stats()
    except MarketplaceError as e:
        raise _http_error(e)
    return stats.model_dump()


@router.get("/providers/{address}/summary")
async def provider_summary(address: str, session: Session = Depends(get_session)) -> dict[str, Any]:
    try:
        context = await session.resolve()
        summary = await context.client.get_provider_summary(address)
    except MarketplaceError as e:
        raise _http_error(e)
    return summary.model_dump()


@router.get("/buyers/{address}/queries")
async def buyer_queries(address: str, session: Session = Depends(get_session)) -> list[dict[str, Any]]:
    try:
        context = await session.resolve()
        queries = []
        for query_id in await context.client.list_buyer_query_ids(address):
            queries.append((await context.client.get_query(query_id)).model_dump(mode="json"))
    except MarketplaceError as e:
        raise _http_error(e)
    return queries
