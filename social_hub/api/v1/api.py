from fastapi import APIRouter

from social_hub.api.v1.endpoints import friends, notifications


api_router = APIRouter()
api_router.include_router(friends.router, prefix="/friends", tags=["friends"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
