"""Account domain schemas"""

from pydantic import BaseModel


class CheckEmailRequest(BaseModel):
    email: str = ""


class CheckEmailResponse(BaseModel):
    registered: bool
