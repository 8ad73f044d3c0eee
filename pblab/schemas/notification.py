from typing import Optional

from pydantic import BaseModel, ConfigDict


class NotificationCreate(BaseModel):
    # unknown fields such as a client-supplied actor_id are dropped
    model_config = ConfigDict(extra="ignore")

    recipient_id: str
    type: str
    reference_id: str
    reference_url: Optional[str] = None
