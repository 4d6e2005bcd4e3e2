from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

WarningType = Literal[
    "SSH_KEY",
    "AWS_CREDENTIALS",
    "API_KEY",
    "PASSWORD",
    "DATABASE_CREDENTIALS",
    "OAUTH_TOKEN",
    "CERTIFICATE",
    "OTHER",
]


# ---------- INPUT SCHEMAS ----------

class ScanRequestIn(BaseModel):
    """Wire shape of the scan endpoint body (camelCase on the wire)."""

    content: str
    file_name: str = Field(alias="fileName")
    file_type: str = Field(alias="fileType")

    model_config = ConfigDict(populate_by_name=True)


# ---------- OUTPUT SCHEMAS ----------

class SecurityWarningOut(BaseModel):
    type: WarningType
    description: str
    location: str | None = None


class ScanVerdictOut(BaseModel):
    is_safe: bool = Field(alias="isSafe")
    warnings: list[SecurityWarningOut] = []

    model_config = ConfigDict(populate_by_name=True)
