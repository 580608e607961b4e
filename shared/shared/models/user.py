from uuid import UUID

from pydantic import BaseModel, ConfigDict

from shared.constants import Role


class TokenClaims(BaseModel):
    """Verified identity-provider claims carried by a bearer token."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    external_id: str
    email: str = ""
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None


class Principal(BaseModel):
    """Authenticated caller as stored locally; passed explicitly to every service call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: UUID
    external_id: str
    email: str
    role: Role
