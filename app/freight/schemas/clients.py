from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.freight.schemas.common import Pagination

ClientType = Literal["individual", "business"]
ClientStatus = Literal["active", "inactive", "suspended", "archived"]
PHONE_PATTERN = r"^\+?[\d\s\-\(\)\.]{7,20}$"


class ClientBase(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    company_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    siret: str | None = Field(default=None, pattern=r"^\d{14}$")
    vat_number: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)
    notes: str | None = None


class ClientCreateRequest(ClientBase):
    client_type: ClientType = "business"
    email: EmailStr
    country: str = Field(default="FR", min_length=2, max_length=2)
    status: ClientStatus = "active"
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def ensure_name(self):
        if self.client_type == "business" and not self.company_name:
            raise ValueError("company_name is required for business clients")
        if self.client_type == "individual" and not (self.first_name and self.last_name):
            raise ValueError("first_name and last_name are required for individual clients")
        return self


class ClientUpdateRequest(ClientBase):
    client_type: ClientType | None = None
    email: EmailStr | None = None
    country: str | None = Field(default=None, min_length=2, max_length=2)
    status: ClientStatus | None = None
    tags: list[str] | None = None


class ClientResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    tenant_id: UUID
    client_type: str
    first_name: str | None
    last_name: str | None
    company_name: str | None
    email: str
    phone: str | None
    siret: str | None
    vat_number: str | None
    address: str | None
    city: str | None
    postal_code: str | None
    country: str
    status: str
    notes: str | None
    tags: list[str]
    version: int
    created_at: datetime
    updated_at: datetime


class ClientMutationResponse(BaseModel):
    message: str
    data: ClientResponse


class ClientListResponse(BaseModel):
    data: list[ClientResponse]
    pagination: Pagination


class ClientStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]


class ClientStatisticsResponse(BaseModel):
    client_id: UUID
    total_folders: int
    active_folders: int
    folders_by_status: dict[str, int]
    folders_by_transport: dict[str, int]
    recent_folders: int
    last_folder_date: date | None
    period_start: datetime
    period_end: datetime
    calculated_at: datetime


ContactType = Literal["primary", "billing", "delivery", "technical", "emergency", "legal", "other"]


class ContactCreateRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    title: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    contact_type: ContactType = "other"
    email: EmailStr | None = None
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    mobile_phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    is_primary: bool = False
    is_active: bool = True


class ContactUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    title: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    contact_type: ContactType | None = None
    email: EmailStr | None = None
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    mobile_phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    is_primary: bool | None = None
    is_active: bool | None = None


class ContactResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    client_id: UUID
    first_name: str
    last_name: str
    title: str | None
    department: str | None
    contact_type: str
    email: str | None
    phone: str | None
    mobile_phone: str | None
    is_primary: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ContactListResponse(BaseModel):
    client_id: UUID
    data: list[ContactResponse]


class ContactMutationResponse(BaseModel):
    message: str
    client: ClientResponse
    contact: ContactResponse


class ContactDeleteResponse(BaseModel):
    action: Literal["deactivated", "removed"]
    contact_id: UUID
    remaining_contacts: int


BatchOperation = Literal["update", "delete", "change_status", "add_tags", "remove_tags"]


class BatchData(BaseModel):
    updates: ClientUpdateRequest | None = None
    new_status: ClientStatus | None = None
    tags: list[str] | None = None


class ClientBatchRequest(BaseModel):
    operation: BatchOperation
    client_ids: list[UUID] = Field(min_length=1, max_length=1000)
    data: BatchData = Field(default_factory=BatchData)
    force: bool = False

    @model_validator(mode="after")
    def ensure_operation_data(self):
        if self.operation == "update" and self.data.updates is None:
            raise ValueError("data.updates is required for update")
        if self.operation == "change_status" and self.data.new_status is None:
            raise ValueError("data.new_status is required for change_status")
        if self.operation in ("add_tags", "remove_tags") and not self.data.tags:
            raise ValueError("data.tags is required for tag operations")
        return self


class BatchItemIssue(BaseModel):
    client_id: UUID
    error: str
    error_code: str


class ClientBatchResponse(BaseModel):
    operation: BatchOperation
    executed: bool
    success_count: int
    error_count: int
    warning_count: int
    success_ids: list[UUID]
    errors: list[BatchItemIssue]
    warnings: list[BatchItemIssue]
    execution_time_ms: int


class ValidationOptions(BaseModel):
    check_email_uniqueness: bool = True
    check_siret_uniqueness: bool = True
    check_formats: bool = True
    check_business_rules: bool = True


class ClientValidationRequest(BaseModel):
    operation_type: Literal["create", "update"]
    client_id: UUID | None = None
    data: dict[str, Any]
    options: ValidationOptions = Field(default_factory=ValidationOptions)

    @model_validator(mode="after")
    def ensure_client_id(self):
        if self.operation_type == "update" and self.client_id is None:
            raise ValueError("client_id is required for update validation")
        return self


class ValidationIssue(BaseModel):
    field: str
    message: str
    code: str


class ClientValidationResponse(BaseModel):
    is_valid: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationIssue]
