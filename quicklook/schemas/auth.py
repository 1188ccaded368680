from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class TokenRequest(BaseModel):
    api_key: str = Field(..., alias="apiKey", min_length=1)
    # Signed-in operator; lets the ledger decide whether to offer validation controls.
    user_id: Optional[str] = Field(default=None, alias="userId")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {"example": {"apiKey": "super-secret-key", "userId": "a1b2c3"}},
    }


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshRequest(BaseModel):
    refresh_token: str
