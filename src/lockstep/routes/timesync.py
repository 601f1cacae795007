"""Clock-offset round trip.

Compatible with the ``timesync`` protocol: the request carries an ``id`` that
is echoed back together with the server time in epoch milliseconds.
"""

from fastapi import APIRouter

from lockstep.schemas import TimesyncRequest, TimesyncResponse
from lockstep.utils.time import epoch_ms

router = APIRouter(tags=["timesync"])


@router.post("/timesync", response_model=TimesyncResponse)
async def timesync(body: TimesyncRequest) -> TimesyncResponse:
    return TimesyncResponse(id=body.id, result=epoch_ms())
