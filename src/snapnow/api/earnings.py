"""Provider earnings endpoints."""

from fastapi import APIRouter, Depends

from snapnow.api.identity import get_container, require_caller
from snapnow.api.models import EarningOut, EarningsSummaryOut
from snapnow.containers import AppContainer
from snapnow.domain.identity import Caller

router = APIRouter(prefix="/earnings", tags=["earnings"])


@router.get("")
async def list_earnings(
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> dict[str, list[EarningOut]]:
    earnings = container.earnings_service.list_earnings(caller)
    return {"earnings": [EarningOut.from_domain(e) for e in earnings]}


@router.get("/summary")
async def summarize_earnings(
    caller: Caller = Depends(require_caller),
    container: AppContainer = Depends(get_container),
) -> EarningsSummaryOut:
    return EarningsSummaryOut.from_domain(container.earnings_service.summarize(caller))
