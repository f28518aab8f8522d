# erapport/api/routers/logs.py - Client-side events forwarded to the application log
from fastapi import APIRouter, Depends
import json
import logging

from erapport.api.deps.auth import get_current_user
from erapport.schemas.api import ClientLogIn, StatusOut
from erapport.schemas.report import UserRecord

logger = logging.getLogger(__name__)
client_logger = logging.getLogger("erapport.client")
router = APIRouter()


@router.post("", response_model=StatusOut)
def record_client_event(
    entry: ClientLogIn,
    user: UserRecord = Depends(get_current_user),
):
    client_logger.info(
        f"client-event user={user.id} event={entry.event} "
        f"payload={json.dumps(entry.payload, ensure_ascii=False, default=str)}"
    )
    return StatusOut()
