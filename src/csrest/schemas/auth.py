"""Authentication request and response schemas."""

from pydantic import BaseModel, Field, field_validator


class LoginRequest(BaseModel):
    """Credentials posted to /api/auth/login.

    Values are sent as given; the server decides whether they are acceptable.
    ``duration_ms`` is omitted from the wire when unset or 0 so the server
    applies its default token lifetime.
    """

    username: str
    password: str
    duration_ms: int | None = None

    @field_validator("duration_ms")
    @classmethod
    def zero_duration_is_unset(cls, v: int | None) -> int | None:
        return v or None


class AuthDto(BaseModel):
    """Bearer token issued by the team server."""

    access_token: str = Field(..., min_length=1)
    token_type: str = ""
    expires_in: int = 0

    def __repr__(self) -> str:
        # Never echo the token into tracebacks or logs
        return f"AuthDto(token_type={self.token_type!r}, expires_in={self.expires_in})"
