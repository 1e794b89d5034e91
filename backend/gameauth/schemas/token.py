from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TokenResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str
    expiry: datetime
    username: str
    email: str


class TokenClaims(BaseModel):
    """Claims read back from a validated access token."""

    sub: str
    username: str = Field(alias="unique_name")
    email: str
    jti: str
    iat: int
    exp: int
