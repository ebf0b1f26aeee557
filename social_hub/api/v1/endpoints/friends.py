from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from social_hub import schemas
from social_hub.api.v1.deps import get_current_user_id, get_relationship_service, get_user_directory
from social_hub.schemas.enums import FriendRequestOutcomeEnum, RequestDirectionEnum
from social_hub.services.base import UserDirectory
from social_hub.services.relationship_service import RelationshipService

router = APIRouter()


@router.get("/", response_model=List[schemas.FriendRead], summary="List the current user's friends")
async def list_friends(
    current_user_id: str = Depends(get_current_user_id),
    relationship_service: RelationshipService = Depends(get_relationship_service),
):
    friends = await relationship_service.friends_of(current_user_id)
    # Alphabetical for display; the service only guarantees the set
    return sorted(friends, key=lambda f: (f.profile.display_name or f.profile.username).lower())


@router.get("/requests", response_model=List[schemas.FriendRequestRead], summary="List pending friend requests")
async def list_friend_requests(
    direction: RequestDirectionEnum = RequestDirectionEnum.INCOMING,
    current_user_id: str = Depends(get_current_user_id),
    relationship_service: RelationshipService = Depends(get_relationship_service),
):
    return await relationship_service.list_pending(current_user_id, direction)


@router.post("/requests", response_model=schemas.FriendRequestResult, summary="Send a friend request")
async def send_friend_request(
    request_in: schemas.FriendRequestCreate,
    response: Response,
    current_user_id: str = Depends(get_current_user_id),
    relationship_service: RelationshipService = Depends(get_relationship_service),
    user_directory: UserDirectory = Depends(get_user_directory),
):
    if request_in.recipient_id != current_user_id and not await user_directory.get_many([request_in.recipient_id]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Target user not found.")

    result = await relationship_service.send_request(current_user_id, request_in.recipient_id)
    if result.outcome == FriendRequestOutcomeEnum.SENT:
        response.status_code = status.HTTP_201_CREATED
    return result


@router.post("/requests/{friendship_id}/accept", response_model=schemas.Friendship, summary="Accept a friend request")
async def accept_friend_request(
    friendship_id: str,
    current_user_id: str = Depends(get_current_user_id),
    relationship_service: RelationshipService = Depends(get_relationship_service),
):
    return await relationship_service.respond(friendship_id, current_user_id, accept=True)


@router.post("/requests/{friendship_id}/decline", response_model=schemas.Friendship, summary="Decline a friend request")
async def decline_friend_request(
    friendship_id: str,
    current_user_id: str = Depends(get_current_user_id),
    relationship_service: RelationshipService = Depends(get_relationship_service),
):
    return await relationship_service.respond(friendship_id, current_user_id, accept=False)


@router.delete("/{friendship_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove a friend or withdraw a request")
async def remove_friend(
    friendship_id: str,
    current_user_id: str = Depends(get_current_user_id),
    relationship_service: RelationshipService = Depends(get_relationship_service),
):
    await relationship_service.remove_friend(friendship_id, current_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/search", response_model=List[schemas.ProfileRead], summary="Find learners to add")
async def search_users(
    q: str = Query("", max_length=50),
    current_user_id: str = Depends(get_current_user_id),
    relationship_service: RelationshipService = Depends(get_relationship_service),
):
    return await relationship_service.search(current_user_id, q)
