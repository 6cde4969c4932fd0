# villa_booking/schemas/auth.py
from typing import Optional

from pydantic import BaseModel, Field

from villa_booking.schemas.user import UserOut


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: Optional[UserOut] = None

    model_config = {"from_attributes": True}


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)
