# givabit/api/routes/health.py
from fastapi import APIRouter, Request
from sqlalchemy import text

router = APIRouter()

@router.get("/health")
async def health(request: Request):
    db_ok = True
    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        db_ok = False
    return {"ok": db_ok, "db": db_ok}
