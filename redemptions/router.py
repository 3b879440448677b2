from fastapi import APIRouter
from dishka.integrations.fastapi import inject
from dishka import FromComponent
from typing import Annotated
from redemptions.schemas import GetRedemptionsRequest, RedemptionsResponse
from redemptions.usecases import GetOnchainRedemptionsUseCase

router = APIRouter(
    prefix="/api/redemptions",
    tags=["Redemptions"]
)


@router.post("/onchain", response_model=RedemptionsResponse)
@inject
async def get_onchain_redemptions(
    request: GetRedemptionsRequest,
    use_case: Annotated[
        GetOnchainRedemptionsUseCase, FromComponent("redemptions")
    ]
) -> RedemptionsResponse:
    """
    Get on-chain merchant redemptions of the DonationTreasury, newest first.

    Parameters
    ----------
    request : GetRedemptionsRequest
        Request with optional block range, chunk size and merchant filter
    use_case : GetOnchainRedemptionsUseCase
        Use case for scanning redemption events

    Returns
    -------
    RedemptionsResponse
        Redemption audit trail
    """
    return await use_case(
        from_block=request.from_block,
        to_block=request.to_block,
        chunk_size=request.chunk_size,
        merchant=request.merchant
    )
