from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .analytics.aggregator import compute_analytics
from .analytics.store import get_events
from .discovery.data_store import get_service
from .discovery.errors import CollaboratorError
from .discovery.models import (
    AutoRetrainRequest,
    AvailableDishesRequest,
    DishListResponse,
    DishOut,
    RecommendedDishesRequest,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = get_service()
    service.start()
    try:
        yield
    finally:
        service.stop()


app = FastAPI(title="Dish Discovery API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(CollaboratorError)
async def collaborator_error_handler(request: Request, exc: CollaboratorError) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc), "retryable": exc.retryable},
    )


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict:
    coordinator = get_service().coordinator
    return {"status": "degraded" if coordinator.degraded else "ok"}


# ── Discovery endpoints ──────────────────────────────────────────────────


@app.post("/dishes/available", response_model=DishListResponse)
def available_dishes(body: AvailableDishesRequest) -> DishListResponse:
    service = get_service()
    result = service.list_available(body.to_constraints(service.config.page_size))
    return DishListResponse(dishes=[DishOut.from_posting(p) for p in result.postings])


@app.post("/dishes/recommended", response_model=DishListResponse)
def recommended_dishes(body: RecommendedDishesRequest) -> DishListResponse:
    service = get_service()
    constraints = body.to_constraints(service.config.page_size)
    result = service.list_recommended(
        body.requester_id,
        body.previous_ids,
        constraints,
        constraints.limit,
    )
    return DishListResponse(
        dishes=[DishOut.from_posting(p) for p in result.postings],
        path=result.path,
    )


# ── Operator endpoints ───────────────────────────────────────────────────


@app.post("/recommender/retrain")
def retrain() -> dict:
    service = get_service()
    trained = service.retrain_now()
    return {"trained": trained, **service.status()}


@app.get("/recommender/status")
def recommender_status() -> dict:
    return get_service().status()


@app.put("/recommender/auto-retrain")
def set_auto_retrain(body: AutoRetrainRequest) -> dict:
    service = get_service()
    service.set_auto_retrain(body.enabled)
    return {"auto_retrain_enabled": service.is_auto_retrain_enabled()}


@app.get("/analytics")
def analytics() -> dict:
    return compute_analytics(get_events())
