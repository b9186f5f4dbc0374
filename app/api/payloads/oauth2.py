from pydantic import BaseModel, Field


class AuthorizationUrlResponse(BaseModel):
    """Response of the connect initiation endpoint."""

    request_id: str = Field(..., description="Unique request identifier")
    authorization_url: str = Field(..., description="Provider consent URL to redirect the user to")


class ConnectionCallbackRequest(BaseModel):
    """Body the front-end posts after the provider redirected back with a code."""

    code: str = Field(..., min_length=1, description="Authorization code from the provider redirect")
    state: str = Field(..., min_length=1, description="State value issued by the initiation endpoint")
