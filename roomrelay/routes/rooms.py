from fastapi import APIRouter, HTTPException, Request

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("/{room_id}")
async def room_details(room_id: str, request: Request):
    room = request.app.state.relay.rooms.get_room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return {
        "roomId": room.id,
        "participantCount": len(room.peers),
        "createdAt": room.opened_at.isoformat(),
    }
