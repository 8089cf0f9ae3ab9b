"""Base schemas and common types for the approval pipeline API."""

from pydantic import BaseModel, ConfigDict, Field


class WorkshopBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        use_enum_values=True,
    )


# =============================================================================
# PAGINATION
# =============================================================================


class PaginationInfo(WorkshopBaseModel):
    """Pagination block returned with list responses."""

    current_page: int
    total_pages: int
    total_items: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(WorkshopBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(WorkshopBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None = None
