from fastapi import APIRouter, Request
from wokai.infra.redis_client import get_redis

router = APIRouter()


@router.get("/ready")
async def ready(request: Request):
    redis_ok = False
    try:
        r = await get_redis()
        await r.ping()
        redis_ok = True
    except Exception:
        pass
    return {"ok": True, "redis_ok": redis_ok, "sessions": len(request.app.state.sessions)}
