from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class ForbiddenError(HTTPException):
    """Raised when user lacks permission to access a resource."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message,
        )


class ValidationError(HTTPException):
    """Raised when request validation fails."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message,
        )


class UsageLimitError(HTTPException):
    """Raised when a free user has used up today's summaries."""

    def __init__(self, message: str = "Usage limit reached"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message,
        )


class UpstreamServiceError(HTTPException):
    """Raised when an external collaborator (OpenAI, Supabase, Stripe) fails."""

    def __init__(self, service: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{service} request failed",
        )


class QuotaExceededError(Exception):
    """Domain error: the daily free quota is exhausted."""
