"""
FastAPI Backend for the Contract Family Engine.

This module exposes the engine to presentation layers:
- Family assembly for a posted batch of raw agreement records
- Per-contract governance annotation for one family

Architecture:
    Client -> FastAPI -> Orchestrator -> Normalize/Build/Aggregate/Assemble -> Families
"""

import os
from typing import Any, Dict, List, Optional

import msgspec
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from family_engine import __version__
from family_engine.config import load_config
from family_engine.error_handling import FamilyEngineError, FamilyNotFoundError
from family_engine.logging_config import setup_logging
from family_engine.orchestrator import FamilyAssemblyOrchestrator, create_orchestrator, find_family

load_dotenv()

setup_logging(
    log_dir=os.getenv("LOG_DIR"),
    level=os.getenv("LOG_LEVEL", "INFO"),
)


# =============================================================================
# FastAPI Application Setup
# =============================================================================

app = FastAPI(
    title="Contract Family Engine",
    description="Hierarchy assembly, family metrics and governance inheritance for contract records",
    version=__version__,
)

# CORS configuration for frontend communication
cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Orchestrator Singleton
# =============================================================================

orchestrator: Optional[FamilyAssemblyOrchestrator] = None


def get_orchestrator() -> FamilyAssemblyOrchestrator:
    """Lazy initialization of the orchestrator singleton."""
    global orchestrator
    if orchestrator is None:
        orchestrator = create_orchestrator(load_config())
        logger.info("Orchestrator initialized")
    return orchestrator


# =============================================================================
# Request Models
# =============================================================================


class AgreementsRequest(BaseModel):
    """Batch of raw agreement records, as exported by the contract repository."""

    agreements: List[Dict[str, Any]]


def _to_response(payload: Any) -> JSONResponse:
    """Serialize msgspec structs (camelCase keys) into a JSON response."""
    return JSONResponse(content=msgspec.to_builtins(payload))


# =============================================================================
# Endpoints
# =============================================================================


@app.get("/")
async def root():
    """API information."""
    return {
        "name": "Contract Family Engine",
        "version": __version__,
        "endpoints": {
            "families": "POST /families",
            "family_contracts": "POST /families/{family_id}/contracts",
            "health": "GET /health",
        },
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.post("/families")
def assemble_families(request: AgreementsRequest):
    """Assemble contract families from a batch of raw agreement records."""
    logger.info("Family assembly requested", agreement_count=len(request.agreements))
    try:
        result = get_orchestrator().process(request.agreements)
    except FamilyEngineError as e:
        logger.error(f"Family assembly failed: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    return _to_response(result)


@app.post("/families/{family_id}/contracts")
def family_contracts(family_id: str, request: AgreementsRequest):
    """Per-contract governance annotation for one family of the batch."""
    engine = get_orchestrator()
    try:
        result = engine.process(request.agreements)
        annotations = engine.annotate(find_family(result, family_id))
    except FamilyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FamilyEngineError as e:
        logger.error(f"Family annotation failed: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    return _to_response(annotations)
