from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from social_hub.core import security
from social_hub.services.base import NotificationStore, UserDirectory
from social_hub.services.registry import SocialServices
from social_hub.services.relationship_service import RelationshipService

# Tokens are issued by the identity provider; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    user_id = security.user_id_from_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id

def get_services(request: Request) -> SocialServices:
    return request.app.state.services

def get_relationship_service(services: SocialServices = Depends(get_services)) -> RelationshipService:
    return services.relationship_service

def get_notification_store(services: SocialServices = Depends(get_services)) -> NotificationStore:
    return services.notification_store

def get_user_directory(services: SocialServices = Depends(get_services)) -> UserDirectory:
    return services.user_directory
