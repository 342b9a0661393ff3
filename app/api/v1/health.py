from fastapi import APIRouter

from app.core.utils import utcnow

router = APIRouter()

API_VERSION = "1.0.0"

@router.get("")
async def health_check():
    return {
        "success": True,
        "message": "API is healthy",
        "timestamp": utcnow().isoformat(),
        "version": API_VERSION,
    }
