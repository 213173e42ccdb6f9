# salescomm/main.py
import logging

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .routers.commission import get_config, router as commission_router
from .utils.logging_utils import setup_logging_from_config

logger = logging.getLogger(__name__)

setup_logging_from_config(get_config())

# ---------- App ----------
app = FastAPI(
    title="SalesComm: Sales Commission Engine",
    version="1.0.0",
    description="Per-representative and manager commission from accounting ledger exports.",
)

app.include_router(commission_router)


# ---------- Exception Handlers ----------
@app.exception_handler(ValueError)
async def _bad_input(request, exc):
    logger.warning(f"Rejected request to {request.url.path}: {exc}")
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(FileNotFoundError)
async def _not_found(request, exc):
    return JSONResponse({"error": str(exc)}, status_code=404)


@app.exception_handler(RequestValidationError)
async def _validation(request, exc):
    return JSONResponse({"error": "Invalid request body", "details": jsonable_encoder(exc.errors())}, status_code=422)


@app.exception_handler(Exception)
async def _unhandled(request, exc):
    logger.exception(f"Unhandled {type(exc).__name__} on {request.url.path}")
    return JSONResponse({"error": f"Server error: {type(exc).__name__}: {exc}"}, status_code=500)


# ---------- Routes ----------
@app.get("/healthz", summary="Lightweight health check")
def healthz() -> dict:
    return {"ok": True}
