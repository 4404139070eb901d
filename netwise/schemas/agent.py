"""Agent wire schemas — the agent speaks camelCase JSON."""

from pydantic import BaseModel, ConfigDict, Field

from netwise.schemas.common import ServerKind


class AgentCheckIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    server_id: str = Field(..., alias="serverId", min_length=1)
    token: str = Field(..., min_length=1)
    type: ServerKind = ServerKind.DNS


class AgentCheckInResponse(BaseModel):
    command: str | None = None


class AgentResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    server_id: str = Field(..., alias="serverId", min_length=1)
    token: str = Field(..., min_length=1)
    output: str = ""
    exit_code: int = Field(..., alias="exitCode")
    type: ServerKind = ServerKind.DNS
