from pydantic import BaseModel, field_validator


class SignInIn(BaseModel):
    email: str
    name: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("A valid email address is required")
        return v


class SessionOut(BaseModel):
    email: str
    name: str | None = None
