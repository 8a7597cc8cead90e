from fastapi import APIRouter

from sprintpulse.config import settings

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "name": settings.app.name, "version": settings.app.version}
