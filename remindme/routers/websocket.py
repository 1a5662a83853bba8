import asyncio
import logging
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from remindme.pubsub.hub import Hub
from remindme.services.auth_service import decode_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["ws"])


async def _wait_for_disconnect(websocket: WebSocket):
    try:
        while True:
            # Client messages carry nothing; keep reading to notice the close
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/changes")
async def changes_feed(websocket: WebSocket):
    """Live change feed for the authenticated user.

    Connect to: ws://host/ws/changes?token=your_token

    Each message is the logged sync event, as returned by /sync/changes:
    {"id": 7, "entity_type": "reminder", "entity_id": 1, "action": "update",
     "payload": {...}, "device_id": 2, "created_at": "..."}
    Events are best effort; reconnecting clients catch up through /sync/changes.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401)
        return
    try:
        user = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=4401)
        return

    hub: Hub = websocket.app.state.hub
    user_id = user["id"]
    with hub.subscribe_async(user_id, asyncio.get_running_loop()) as channel:
        await websocket.accept()
        logger.info(f"Live feed connected for user {user_id}")
        receiver = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            while True:
                getter = asyncio.create_task(channel.get())
                done, _ = await asyncio.wait(
                    {getter, receiver}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter not in done:
                    getter.cancel()
                    break
                await websocket.send_json(getter.result())
        except WebSocketDisconnect:
            pass
        finally:
            receiver.cancel()
            logger.info(f"Live feed disconnected for user {user_id}")
