from pydantic import BaseModel

# Schema for WebSocket messages
class WebSocketMessage(BaseModel):
    type: str # "snapshot", "new_notification", "action_result", "state", "error"
    payload: dict
