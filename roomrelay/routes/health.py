from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/")
async def root():
    return {"ok": True, "msg": "Room relay running"}


@router.get("/health")
async def health(request: Request):
    relay = request.app.state.relay
    return {
        "ok": relay.accepting,
        "rooms": relay.rooms.live_count(),
        "sessions": len(relay.sessions),
    }
