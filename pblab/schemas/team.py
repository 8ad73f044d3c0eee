from pydantic import BaseModel


class InviteToken(BaseModel):
    token: str
