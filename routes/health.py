from fastapi import APIRouter, Depends

from db import store
from db.database import get_db, get_schema_version

router = APIRouter()

@router.get("/health")
async def health(conn = Depends(get_db)):
    with store.storage_errors("health"):
        version = get_schema_version(conn)
    return {"status": "ok", "schemaVersion": version}
