"""Kelly bet sizing endpoints."""

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from edgefinder.betting.kelly_calculator import size_bet
from edgefinder.entitlements import Tier, can_size_bets

router = APIRouter()


class KellyRequest(BaseModel):
    """Request body for Kelly sizing."""

    price: int = Field(..., description="American odds offered (e.g. -110, +150)")
    win_probability: float = Field(..., gt=0, lt=1, description="Estimated win probability")
    bankroll: Optional[float] = Field(None, gt=0, description="Bankroll in dollars")


@router.post("/kelly")
async def calculate_kelly(
    request: Request,
    body: KellyRequest,
    tier: Tier = Query(Tier.FREE, description="Subscription tier (free or pro)"),
) -> dict[str, Any]:
    """
    Size a bet with full, half and quarter Kelly.

    With a bankroll, also returns the capped fractional-Kelly stake
    recommendation. Pro only.
    """
    if not can_size_bets(tier):
        raise HTTPException(status_code=403, detail="Kelly sizing requires a pro subscription")

    sizing = size_bet(body.price, body.win_probability, bankroll=body.bankroll)
    response = sizing.to_dict()

    calculator = request.app.state.app_state.kelly_calculator
    if body.bankroll is not None and calculator is not None:
        stake = calculator.calculate_stake(
            bankroll=body.bankroll,
            win_probability=body.win_probability,
            odds=body.price,
        )
        response["recommendation"] = asdict(stake)

    return response
