from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.freight.schemas.common import Pagination

ArrivalStatus = Literal["scheduled", "delayed", "arrived", "early", "cancelled"]
BillOfLadingStatus = Literal["draft", "issued", "shipped", "discharged", "delivered", "cancelled"]


class ContainerTypeResponse(BaseModel):
    model_config = {"from_attributes": True}

    iso_code: str
    description: str
    size_feet: int
    teu: float


class ContainerCreate(BaseModel):
    container_number: str = Field(..., pattern=r"^[A-Z]{4}\d{7}$")
    container_type: str | None = Field(default=None, description="ISO 6346 size/type code, for example 22G1.")
    seal_number: str | None = None
    gross_weight_kg: float | None = Field(default=None, ge=0)
    volume_cbm: float | None = Field(default=None, ge=0)
    package_count: int | None = Field(default=None, ge=0)
    estimated_arrival_date: datetime | None = None


class ContainerResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    bl_id: UUID
    container_number: str
    container_type: ContainerTypeResponse | None
    seal_number: str | None
    gross_weight_kg: float | None
    volume_cbm: float | None
    package_count: int | None
    arrival_status: str
    estimated_arrival_date: datetime | None
    actual_arrival_date: datetime | None
    arrival_location: str | None
    arrival_notes: str | None
    customs_clearance_date: datetime | None
    delivery_ready_date: datetime | None
    created_at: datetime
    updated_at: datetime


class BillOfLadingCreateRequest(BaseModel):
    bl_number: str = Field(..., min_length=1, max_length=100)
    status: BillOfLadingStatus = "draft"
    client_id: UUID | None = None
    shipper_name: str | None = None
    consignee_name: str | None = None
    notify_party: str | None = None
    port_of_loading: str | None = None
    port_of_discharge: str | None = None
    vessel_name: str | None = None
    voyage_number: str | None = None
    issue_date: date | None = None
    shipped_on_board_date: date | None = None
    containers: list[ContainerCreate] = Field(default_factory=list)


class BillOfLadingResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    tenant_id: UUID
    bl_number: str
    status: str
    client_id: UUID | None
    shipper_name: str | None
    consignee_name: str | None
    notify_party: str | None
    port_of_loading: str | None
    port_of_discharge: str | None
    vessel_name: str | None
    voyage_number: str | None
    issue_date: date | None
    shipped_on_board_date: date | None
    created_at: datetime
    containers: list[ContainerResponse] = Field(default_factory=list)


class BillOfLadingListResponse(BaseModel):
    data: list[BillOfLadingResponse]
    pagination: Pagination


class ContainerAddRequest(BaseModel):
    containers: list[ContainerCreate] = Field(..., min_length=1)


class ContainerSummary(BaseModel):
    total_containers: int = 0
    total_teu: float = 0
    total_volume_cbm: float = 0
    total_gross_weight_kg: float = 0
    arrival_status_summary: dict[str, int] = Field(default_factory=dict)
    container_types_summary: dict[str, int] = Field(default_factory=dict)


class FolderContainerInfo(BaseModel):
    id: UUID
    folder_number: str
    has_bill_of_lading: bool
    bl_id: UUID | None = None


class FolderContainersResponse(BaseModel):
    data: list[ContainerResponse]
    folder_info: FolderContainerInfo
    container_summary: ContainerSummary


class ContainerArrivalUpdate(BaseModel):
    container_id: UUID
    arrival_status: ArrivalStatus | None = None
    actual_arrival_date: datetime | None = None
    arrival_notes: str | None = None
    arrival_location: str | None = None
    customs_clearance_date: datetime | None = None
    delivery_ready_date: datetime | None = None


class ContainerBatchUpdateRequest(BaseModel):
    container_updates: list[ContainerArrivalUpdate] = Field(..., min_length=1)


class ContainerUpdateResult(BaseModel):
    container_id: UUID
    success: bool
    skipped: bool = False
    error: str | None = None
    data: ContainerResponse | None = None


class ContainerBatchSummary(BaseModel):
    total_updates: int
    successful_updates: int
    failed_updates: int
    skipped_updates: int = 0


class ContainerBatchUpdateResponse(BaseModel):
    message: str
    results: list[ContainerUpdateResult]
    summary: ContainerBatchSummary
