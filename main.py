import asyncio
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Body
import logging

from opsync.errors import (
    CommitError,
    FetchError,
    InvalidTransitionError,
    RecordExistsError,
    RecordNotFoundError,
    RecordValidationError,
    SyncInProgressError,
)
from syncs import SERVICE_CLASSES

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Ops Dashboard Sync")

# One independent pipeline per collection
services = {name: cls() for name, cls in SERVICE_CLASSES.items()}


def get_service(collection: str):
    service = services.get(collection)
    if service is None:
        raise HTTPException(status_code=404, detail=f"Unknown collection '{collection}'")
    return service


@app.get("/")
async def root():
    return {"status": "Ops Dashboard Sync is running"}


@app.get("/health")
async def health_check():
    """Review state, auto-sync status and lock state for every collection."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "collections": {name: service.health() for name, service in services.items()},
    }


# --- Manual review workflow ---

@app.post("/sync/{collection}/analyze")
async def analyze(collection: str):
    """
    Fetch the sheet and classify it against local records.
    Replaces any classification already under review.
    """
    service = get_service(collection)
    try:
        await service.analyze()
    except (SyncInProgressError, InvalidTransitionError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except FetchError as e:
        raise HTTPException(status_code=502, detail=f"Sync Error: {e}")
    except Exception as e:
        logger.error(f"{collection} analyze failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return service.review.snapshot(include_records=True)


@app.get("/sync/{collection}/review")
async def review(collection: str):
    service = get_service(collection)
    return service.review.snapshot(include_records=True)


@app.post("/sync/{collection}/confirm")
async def confirm(collection: str):
    """
    Commit New and Updated records. On a database error the classification
    stays under review and the commit can be retried.
    """
    service = get_service(collection)
    try:
        stats = await service.confirm()
    except (SyncInProgressError, InvalidTransitionError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CommitError as e:
        raise HTTPException(status_code=500, detail={"error": str(e), "committed": e.committed})
    return {"status": "success", "stats": stats.to_dict(), "review": service.review.snapshot()}


@app.post("/sync/{collection}/cancel")
async def cancel(collection: str):
    service = get_service(collection)
    service.cancel()
    return service.review.snapshot()


# --- Automatic daily sync ---

@app.post("/sync/{collection}/auto")
async def auto_sync(collection: str):
    service = get_service(collection)
    result = await service.run_daily_sync()
    if result.get("reason") == "sync_already_in_progress":
        raise HTTPException(status_code=409, detail=result)
    return result


@app.post("/sync/auto")
async def auto_sync_all():
    """
    Runs the daily sync for every collection.
    A failure in one collection does not stop the others.
    """
    names = list(services)
    outcomes = await asyncio.gather(
        *(services[name].run_daily_sync() for name in names),
        return_exceptions=True,
    )

    results: Dict[str, Any] = {}
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, Exception):
            logger.error(f"{name} auto sync failed: {outcome}")
            results[name] = {"synced": False, "reason": "error", "error": str(outcome)}
        else:
            results[name] = outcome

    return {"status": "completed", "results": results}


# --- Local records (mirrored to the sheet) ---

@app.post("/records/{collection}")
async def create_record(collection: str, data: Dict[str, Any] = Body(...)):
    service = get_service(collection)
    try:
        return await service.records.create(data)
    except RecordValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RecordExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.patch("/records/{collection}/{key}")
async def update_record(collection: str, key: str, changes: Dict[str, Any] = Body(...)):
    service = get_service(collection)
    try:
        return await service.records.update(key, changes)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/records/{collection}/{key}")
async def delete_record(collection: str, key: str):
    service = get_service(collection)
    try:
        await service.records.delete(key)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "deleted", "key": key}
