# FILE: thumbcraft/api/deps.py

import jwt
from datetime import timezone

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thumbcraft.core.config import RAZORPAY_API_BASE, RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET
from thumbcraft.core.database import get_db
from thumbcraft.models.user import User
from thumbcraft.services.auth_service import decode_token
from thumbcraft.services.image_service import ImageGenerationClient
from thumbcraft.services.payment_service import PaymentProvider, RazorpayClient

security = HTTPBearer(auto_error=False)


async def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: AsyncSession = Depends(get_db),
):
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_token(credentials.credentials)

        user_id = payload.get("user_id") or payload.get("id")
        if not user_id or not isinstance(user_id, str):
            raise HTTPException(status_code=401, detail="Invalid token payload")

        user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
        if not user:
            raise HTTPException(status_code=401, detail="User not found")

        return {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "created_at": user.created_at.replace(tzinfo=timezone.utc).isoformat(),
        }

    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_image_client() -> ImageGenerationClient:
    return ImageGenerationClient()


def get_payment_provider() -> PaymentProvider:
    return RazorpayClient(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET, RAZORPAY_API_BASE)


def get_payment_secret() -> str:
    return RAZORPAY_KEY_SECRET
