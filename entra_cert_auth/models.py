"""Token endpoint response shapes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator


class TokenBody(BaseModel):
    """Successful token endpoint body. Unknown members are ignored."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: str
    expires_in: PositiveInt
    ext_expires_in: int | None = None

    @field_validator("token_type")
    @classmethod
    def _bearer_only(cls, v: str) -> str:
        if v.lower() != "bearer":
            raise ValueError(f"unsupported token_type {v!r}")
        return "Bearer"


class ErrorBody(BaseModel):
    """
    OAuth2 error body, with the extra members Entra adds.

    Only ``error`` is required. The optional members are best effort: a null
    description or odd ``error_codes`` entries must not hide the error code.
    """

    model_config = ConfigDict(extra="ignore")

    error: str = Field(min_length=1)
    error_description: str = ""
    error_codes: list[int] = Field(default_factory=list)
    correlation_id: str | None = None
    trace_id: str | None = None

    @field_validator("error_description", mode="before")
    @classmethod
    def _description_or_empty(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("error_codes", mode="before")
    @classmethod
    def _int_codes_only(cls, v: Any) -> list[int]:
        if not isinstance(v, list):
            return []
        return [c for c in v if isinstance(c, int) and not isinstance(c, bool)]

    @field_validator("correlation_id", "trace_id", mode="before")
    @classmethod
    def _str_or_none(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


@dataclass(frozen=True, repr=False)
class TokenResponse:
    """
    Access token returned to the caller. Not cached or persisted here.
    """

    access_token: str
    token_type: str
    expires_in: int
    """Lifetime in seconds, always > 0."""

    ext_expires_in: int | None = None
    """Extended lifetime Entra reports for outage resilience; optional."""

    @classmethod
    def from_body(cls, body: TokenBody) -> TokenResponse:
        return cls(
            access_token=body.access_token,
            token_type=body.token_type,
            expires_in=body.expires_in,
            ext_expires_in=body.ext_expires_in,
        )

    @property
    def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"{self.token_type} {self.access_token}"}

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "ext_expires_in": self.ext_expires_in,
        }

    def __repr__(self) -> str:
        # Keep the bearer token out of logs and tracebacks.
        return (
            f"TokenResponse(token_type={self.token_type!r}, expires_in={self.expires_in}, "
            f"ext_expires_in={self.ext_expires_in})"
        )
