from pydantic import BaseModel, ConfigDict, field_validator


class CanvasCredentials(BaseModel):
    """Credentials for one Canvas LMS instance.

    Frozen so every session receives its own immutable copy by value.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    domain: str

    @field_validator("token", "domain")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @property
    def base_url(self) -> str:
        """REST API root, e.g. https://school.instructure.com/api/v1."""
        domain = self.domain.rstrip("/")
        if not domain.startswith(("http://", "https://")):
            domain = f"https://{domain}"
        return f"{domain}/api/v1"
