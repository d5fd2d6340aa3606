from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Any, Dict, Optional
import logging
import sys
from pathlib import Path

# Add src to path for internal imports
src_path = Path(__file__).parent.parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from budget_engine import __version__
from budget_engine.engine.breakdown import breakdown_frame
from budget_engine.api.state import engine

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Budget Engine API",
    description="Quote aggregation and pricing for production budgets",
    version=__version__
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class PayloadRequest(BaseModel):
    """A stored budget version payload, in any supported shape."""
    payload: Optional[Dict[str, Any]] = None


@app.get("/")
async def root():
    return {"status": "online", "message": "Budget Engine API Active"}


@app.post("/normalize")
async def normalize_payload(req: PayloadRequest):
    try:
        normalized = engine.normalize(req.payload)
        return jsonable_encoder({
            "shape": normalized.shape,
            "budget": normalized.budget.to_dict(),
            "warnings": [str(w) for w in normalized.warnings],
        })
    except Exception as e:
        logger.exception("Normalization failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/compute")
async def compute_budget(req: PayloadRequest):
    try:
        result = engine.compute(req.payload)
        data = result.to_dict()
        data["trace"] = result.get_trace_text()
        # Decimal amounts are encoded as JSON numbers
        return jsonable_encoder(data)
    except Exception as e:
        logger.exception("Computation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/breakdown")
async def budget_breakdown(req: PayloadRequest):
    try:
        result = engine.compute(req.payload)
        df = breakdown_frame(result)
        df = df.astype(object).where(df.notna(), None)
        return jsonable_encoder({
            "rows": df.to_dict(orient="records"),
            "grandTotal": result.totals.grand_total,
        })
    except Exception as e:
        logger.exception("Breakdown failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/honorarios/{client}")
async def get_client_honorarium(client: str):
    percent = engine.honorarium_table.lookup(client)
    if percent is None:
        raise HTTPException(status_code=404, detail=f"No honorarium configured for {client}")
    return jsonable_encoder({"client": client, "honorariumPercent": percent})


@app.get("/system/status")
async def get_status():
    settings = engine.settings
    return {
        "engine_active": True,
        "version": __version__,
        "honorarium_table": str(settings.honorarium_table) if settings.honorarium_table else None,
        "honorarium_clients": len(engine.honorarium_table),
        "base_categories": list(settings.base_categories),
    }
