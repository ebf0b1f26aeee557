from typing import Optional


class SocialHubError(Exception):
    """
    Base class for failures surfaced to presentation surfaces.
    `detail` is the short, user-facing explanation; `status_code` is what the
    HTTP layer answers with.
    """
    status_code = 400
    default_detail = "Request could not be completed."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class DuplicateRelationship(SocialHubError):
    status_code = 409
    default_detail = "Request already pending or already friends."


class InvalidSelfRelation(SocialHubError):
    status_code = 400
    default_detail = "You cannot befriend yourself."


class NotAuthorized(SocialHubError):
    status_code = 403
    default_detail = "No longer your request to answer."


class InvalidTransition(SocialHubError):
    status_code = 409
    default_detail = "This request was already answered."


class RelationshipNotFound(SocialHubError):
    status_code = 404
    default_detail = "Friend request not found."


class NotificationNotFound(SocialHubError):
    status_code = 404
    default_detail = "Notification not found."


class StoreUnavailable(SocialHubError):
    """Transport or backend failure; the caller decides whether to retry."""
    status_code = 503
    default_detail = "Service temporarily unavailable."
