# /thumbcraft/api/images.py
import logging

from fastapi import APIRouter, Depends

from thumbcraft.api.deps import get_current_user
from thumbcraft.schemas.thumbnails import EnhanceRequest, EnhanceResponse
from thumbcraft.services.image_service import enhance_image

logger = logging.getLogger("thumbcraft.api.images")

router = APIRouter(prefix="/api/images", tags=["images"])


@router.post("/enhance", response_model=EnhanceResponse)
async def enhance(req: EnhanceRequest, user=Depends(get_current_user)):
    logger.info("Enhancing image for %s", user["id"])
    url = await enhance_image(req.image_data, req.prompt)
    return EnhanceResponse(enhanced_image_url=url)
