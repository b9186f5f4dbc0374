from pydantic import BaseModel


class APIError(BaseModel):
    """Error body returned for every handled error."""

    error: str
    error_description: str | None = None
