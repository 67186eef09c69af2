"""
HTTP devnet API.

Exposes a Deployment over JSON. Like a local development node, senders
are unlocked: ``POST /tx`` executes a batch as whatever ``from`` address
the request names. Not meant for exposure beyond a developer machine.

Routes:
    GET  /root                              current whitelist root and version
    GET  /listings/{asset_id}               listing record
    GET  /listings/{asset_id}/discounted-price
    GET  /claims/{address}                  claim record and entitlement
    POST /whitelist/verify                  membership check for one address
    POST /tx                                run a batch (atomic, best_effort, gas_capped)
    GET  /events                            committed events, optional ?name=
    GET  /receipts                          transaction receipts
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from airdropmarket.market.deployment import Deployment
from airdropmarket.protocol.enums import BatchMode
from airdropmarket.protocol.errors import (
    AuthorizationError,
    ExecutionError,
    MarketError,
    StateConflictError,
)
from airdropmarket.utils.json import to_jsonable

logger = logging.getLogger("airdropmarket.api")


class CallModel(BaseModel):
    method: str
    args: List[Any] = Field(default_factory=list)
    kwargs: Dict[str, Any] = Field(default_factory=dict)


class TransactionRequest(BaseModel):
    sender: str = Field(alias="from")
    calls: List[CallModel]
    mode: BatchMode = BatchMode.ATOMIC
    gas_limits: Optional[List[int]] = Field(default=None, alias="gasLimits")
    gas_limit: Optional[int] = Field(default=None, alias="gasLimit")


class VerifyRequest(BaseModel):
    address: str
    proof: List[str] = Field(default_factory=list)


def _status_for(exc: MarketError) -> int:
    if isinstance(exc, AuthorizationError):
        return 403
    if isinstance(exc, StateConflictError):
        return 409
    if isinstance(exc, ExecutionError):
        return 422
    return 400


def create_app(deployment: Deployment) -> FastAPI:
    """Build the FastAPI app serving ``deployment``."""
    app = FastAPI(title="airdropmarket devnet", version="0.1.0")
    chain = deployment.chain
    market = deployment.market

    @app.exception_handler(MarketError)
    async def _market_error(request: Request, exc: MarketError):
        return JSONResponse(status_code=_status_for(exc), content={"error": exc.to_dict()})

    @app.get("/root")
    async def get_root():
        return {"root": market.whitelist_root, "version": market.root_version}

    @app.get("/listings/{asset_id}")
    async def get_listing(asset_id: int):
        return market.get_listing(asset_id).to_dict()

    @app.get("/listings/{asset_id}/discounted-price")
    async def get_discounted_price(asset_id: int):
        return {"assetId": asset_id, "price": market.get_discounted_price(asset_id)}

    @app.get("/claims/{address}")
    async def get_claim(address: str):
        claimed = market.has_user_claimed(address)
        return {"address": address.lower(), "claimed": claimed, "entitled": not claimed}

    @app.post("/whitelist/verify")
    async def verify_whitelist(body: VerifyRequest):
        return {
            "address": body.address.lower(),
            "valid": market.verify_whitelist(body.address, body.proof),
            "root": market.whitelist_root,
        }

    @app.post("/tx")
    async def transact(body: TransactionRequest):
        calls = [c.model_dump() for c in body.calls]

        if body.mode == BatchMode.BEST_EFFORT:
            success, results = chain.transact(
                body.sender, market.try_multicall, calls, gas_limit=body.gas_limit
            )
        elif body.mode == BatchMode.GAS_CAPPED:
            success = [True] * len(calls)
            results = chain.transact(
                body.sender,
                market.multicall_with_gas_limit,
                calls,
                body.gas_limits or [],
                gas_limit=body.gas_limit,
            )
        else:
            success = [True] * len(calls)
            results = chain.transact(
                body.sender, market.multicall, calls, gas_limit=body.gas_limit
            )

        receipt = chain.receipts[-1]
        logger.debug("POST /tx from %s -> tx %d", body.sender, receipt.tx_index)
        return {
            "success": success,
            "results": to_jsonable(results),
            "receipt": receipt.to_dict(),
        }

    @app.get("/events")
    async def get_events(name: Optional[str] = None):
        return [e.to_dict() for e in chain.get_events(name=name)]

    @app.get("/receipts")
    async def get_receipts():
        return [r.to_dict() for r in chain.receipts]

    return app
