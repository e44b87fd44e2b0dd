"""
Store server for group rendezvous.

Provides a REST API over the shared key-value store:
- set / get / check
- atomic add and compare-and-set
- long-poll wait for keys to appear
"""

import argparse
import asyncio
import base64
import binascii
import logging
import time
from typing import Optional, List
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from coordinator.database import Database


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


SERVICE_NAME = "Rendezvous Store"
SERVICE_VERSION = "0.1.0"

# Interval between key checks while a wait request is pending
WAIT_POLL_INTERVAL = 0.05


# Pydantic models for API

class SetRequest(BaseModel):
    """Unconditional write."""
    key: str = Field(..., description="Entry key")
    value: str = Field(..., description="Base64-encoded value")


class KeyRequest(BaseModel):
    """Single-key read."""
    key: str = Field(..., description="Entry key")


class AddRequest(BaseModel):
    """Atomic integer add."""
    key: str = Field(..., description="Entry key")
    delta: int = Field(..., description="Amount to add")


class CompareSetRequest(BaseModel):
    """Atomic compare-and-set."""
    key: str = Field(..., description="Entry key")
    expected: str = Field(..., description="Base64-encoded expected value (empty matches absent)")
    desired: str = Field(..., description="Base64-encoded replacement value")


class KeysRequest(BaseModel):
    """Existence check."""
    keys: List[str] = Field(..., description="Entry keys")


class WaitRequest(BaseModel):
    """Long-poll wait for keys."""
    keys: List[str] = Field(..., description="Entry keys")
    timeout: float = Field(30.0, description="Seconds to wait before answering 408", gt=0)


def encode_value(value: bytes) -> str:
    return base64.b64encode(value).decode('ascii')


def decode_value(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error:
        raise HTTPException(status_code=400, detail="Value is not valid base64")


# Global state
db: Optional[Database] = None
db_path: str = "rendezvous.db"


# Lifespan context manager

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan (startup/shutdown)."""
    global db

    # Startup
    logger.info(f"Starting store server (database: {db_path})...")
    db = Database(db_path)
    logger.info("Store server started successfully")

    yield

    # Shutdown
    logger.info("Shutting down store server...")
    db.close()
    logger.info("Store server shutdown complete")


# Create FastAPI app

app = FastAPI(
    title=SERVICE_NAME,
    description="Shared key-value store for worker rendezvous and barriers",
    version=SERVICE_VERSION,
    lifespan=lifespan
)


# API Endpoints

@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "keys": db.count_keys()
    }


@app.post("/store/set")
async def set_key(request: SetRequest):
    """Overwrite a key."""
    db.set_value(request.key, decode_value(request.value))
    logger.debug(f"Set key: {request.key}")
    return {"key": request.key}


@app.post("/store/get")
async def get_key(request: KeyRequest):
    """
    Read a key.

    Returns 404 if the key does not exist; clients wait first.
    """
    value = db.get_value(request.key)

    if value is None:
        raise HTTPException(status_code=404, detail=f"Key not found: {request.key}")

    return {"key": request.key, "value": encode_value(value)}


@app.post("/store/add")
async def add_key(request: AddRequest):
    """
    Atomically add to an integer key.

    Returns 400 if the existing value is not an integer.
    """
    try:
        total = db.add_value(request.key, request.delta)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Key does not hold an integer: {request.key}"
        )

    return {"key": request.key, "value": total}


@app.post("/store/compare-set")
async def compare_set_key(request: CompareSetRequest):
    """Atomically replace the expected value of a key."""
    stored = db.compare_set(
        request.key,
        decode_value(request.expected),
        decode_value(request.desired)
    )
    return {"key": request.key, "value": encode_value(stored)}


@app.post("/store/check")
async def check_keys(request: KeysRequest):
    """Non-blocking existence check."""
    return {"exists": db.keys_exist(request.keys)}


@app.post("/store/wait")
async def wait_keys(request: WaitRequest):
    """
    Wait until all keys exist.

    Returns 200 once they do, 408 if they are still missing after the
    request timeout.
    """
    deadline = time.monotonic() + request.timeout

    while not db.keys_exist(request.keys):
        if time.monotonic() >= deadline:
            return JSONResponse(
                status_code=408,
                content={"ready": False, "keys": request.keys}
            )
        await asyncio.sleep(WAIT_POLL_INTERVAL)

    return {"ready": True}


# Development server

def run_server(host: str = "0.0.0.0", port: int = 8000, database: str = "rendezvous.db"):
    """
    Run the store server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to bind to (default: 8000)
        database: SQLite database path
    """
    global db_path
    db_path = database
    uvicorn.run(app, host=host, port=port, log_level="info")


def main():
    parser = argparse.ArgumentParser(description="Run the rendezvous store server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--db-path", default="rendezvous.db", help="SQLite database path")
    args = parser.parse_args()

    run_server(host=args.host, port=args.port, database=args.db_path)


if __name__ == "__main__":
    main()
