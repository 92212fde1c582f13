from fastapi import APIRouter, Depends, HTTPException, Response

from ... import qr
from ...config import Settings
from ..deps import get_settings, require_owner

router = APIRouter()


@router.get("/{target}.png", response_description="QR code pointing at a public page")
async def read_qr_code(
    target: str,
    owner_id: str = Depends(require_owner),
    settings: Settings = Depends(get_settings),
):
    if target not in qr.PUBLIC_PATHS:
        raise HTTPException(status_code=404, detail=f"Unknown QR target '{target}'")
    url = qr.public_feedback_url(settings.public_base_url, owner_id, target)
    return Response(content=qr.qr_png(url), media_type="image/png")
