from datetime import date, datetime, time
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.freight.schemas.common import Pagination
from app.freight.schemas.stages import ProgressResponse

TransportType = Literal["M", "T", "A"]
FolderPriority = Literal["low", "normal", "urgent", "critical"]
FolderStatus = Literal["draft", "active", "shipped", "delivered", "completed", "cancelled", "archived"]
FolderSortField = Literal[
    "created_at",
    "updated_at",
    "folder_date",
    "expected_delivery_date",
    "actual_delivery_date",
    "folder_number",
    "title",
    "priority",
    "status",
]


class FolderCreateRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "transport_type": "M",
                "title": "Machine parts from Shanghai",
                "priority": "urgent",
                "folder_date": "2025-08-04",
                "expected_delivery_date": "2025-09-15",
            }
        }
    }

    transport_type: TransportType
    status: FolderStatus = "draft"
    priority: FolderPriority = "normal"
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    client_reference: str | None = Field(default=None, max_length=100)
    folder_date: date | None = None
    expected_delivery_date: date | None = None
    internal_notes: str | None = None
    client_id: UUID | None = None
    bl_id: UUID | None = None
    assigned_to: UUID | None = None
    initialize_stages: bool = True


class FolderUpdateRequest(BaseModel):
    transport_type: TransportType | None = None
    status: FolderStatus | None = None
    priority: FolderPriority | None = None
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    client_reference: str | None = Field(default=None, max_length=100)
    folder_date: date | None = None
    expected_delivery_date: date | None = None
    actual_delivery_date: date | None = None
    internal_notes: str | None = None
    client_id: UUID | None = None
    bl_id: UUID | None = None
    assigned_to: UUID | None = None


class FolderResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    tenant_id: UUID
    folder_number: str
    folder_date: date
    transport_type: str
    title: str | None
    description: str | None
    client_id: UUID | None
    client_reference: str | None
    bl_id: UUID | None
    priority: str
    status: str
    expected_delivery_date: date | None
    actual_delivery_date: date | None
    internal_notes: str | None
    assigned_to: UUID | None
    created_by: UUID
    updated_by: UUID | None
    created_at: datetime
    updated_at: datetime
    metrics: ProgressResponse | None = None


class FolderMutationResponse(BaseModel):
    message: str
    data: FolderResponse
    stages_initialized: bool | None = None


class FolderListResponse(BaseModel):
    data: list[FolderResponse]
    pagination: Pagination


class DateRange(BaseModel):
    model_config = {"populate_by_name": True}

    from_: date | None = Field(default=None, alias="from")
    to: date | None = None


class DateTimeRange(BaseModel):
    model_config = {"populate_by_name": True}

    from_: datetime | None = Field(default=None, alias="from")
    to: datetime | None = None

    @field_validator("from_", "to", mode="before")
    @classmethod
    def _widen_dates(cls, value, info):
        # A bare date covers the whole day.
        if isinstance(value, str) and len(value) == 10:
            value = date.fromisoformat(value)
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time.max if info.field_name == "to" else time.min)
        return value


class FolderSearchFilters(BaseModel):
    transport_type: TransportType | list[TransportType] | None = None
    status: FolderStatus | list[FolderStatus] | None = None
    priority: FolderPriority | list[FolderPriority] | None = None
    assigned_to: UUID | list[UUID] | None = None
    created_by: UUID | list[UUID] | None = None
    client_id: UUID | list[UUID] | None = None
    date_range: DateRange | None = None
    created_range: DateTimeRange | None = None
    expected_delivery_range: DateRange | None = None
    has_bl: bool | None = None
    is_delayed: bool | None = None
    is_urgent: bool | None = None


class SearchPagination(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class SearchSort(BaseModel):
    field: FolderSortField = "created_at"
    order: Literal["asc", "desc"] = "desc"


class FolderSearchRequest(BaseModel):
    query: str | None = None
    filters: FolderSearchFilters = Field(default_factory=FolderSearchFilters)
    pagination: SearchPagination = Field(default_factory=SearchPagination)
    sort: SearchSort = Field(default_factory=SearchSort)


class SearchMetadata(BaseModel):
    total_results: int
    page_results: int
    search_query: str | None
    filters_applied: int


class FolderSearchResponse(FolderListResponse):
    search_metadata: SearchMetadata
    applied_filters: dict
    sort_applied: SearchSort


class FolderStatsResponse(BaseModel):
    type: str
    data: dict
    generated_at: datetime


class FolderDeleteSummary(BaseModel):
    id: UUID
    folder_number: str


class FolderDeleteResponse(BaseModel):
    message: str
    data: FolderDeleteSummary


class FolderDetailResponse(BaseModel):
    data: FolderResponse
