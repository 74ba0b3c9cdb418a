from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    INVALID_CREDENTIALS = ErrorDefinition(
        "INVALID_CREDENTIALS",
        "Invalid credentials",
        status.HTTP_401_UNAUTHORIZED,
    )
    USER_INACTIVE = ErrorDefinition(
        "USER_INACTIVE",
        "User is inactive or suspended",
        status.HTTP_403_FORBIDDEN,
    )
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    TENANT_SCOPE_REQUIRED = ErrorDefinition(
        "TENANT_SCOPE_REQUIRED",
        "Tenant scope is required",
        status.HTTP_403_FORBIDDEN,
    )
    CROSS_TENANT_ACCESS_DENIED = ErrorDefinition(
        "CROSS_TENANT_ACCESS_DENIED",
        "Cross-tenant access denied",
        status.HTTP_403_FORBIDDEN,
    )
    FOLDER_MODIFY_DENIED = ErrorDefinition(
        "FOLDER_MODIFY_DENIED",
        "Insufficient permissions to modify this folder",
        status.HTTP_403_FORBIDDEN,
    )
    STAGE_MODIFY_DENIED = ErrorDefinition(
        "STAGE_MODIFY_DENIED",
        "Insufficient permissions to modify this stage",
        status.HTTP_403_FORBIDDEN,
    )
    INVALID_IDENTIFIER = ErrorDefinition(
        "INVALID_IDENTIFIER",
        "Invalid identifier",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_STAGE = ErrorDefinition(
        "INVALID_STAGE",
        "Invalid processing stage",
        status.HTTP_400_BAD_REQUEST,
    )
    BLOCKING_REASON_REQUIRED = ErrorDefinition(
        "BLOCKING_REASON_REQUIRED",
        "A blocking reason is required",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_STAGE_ACTION = ErrorDefinition(
        "INVALID_STAGE_ACTION",
        "Unknown stage action",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_STATS_TYPE = ErrorDefinition(
        "INVALID_STATS_TYPE",
        "Unsupported statistics type",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_ASSIGNEE = ErrorDefinition(
        "INVALID_ASSIGNEE",
        "Assignee is not a user of this tenant",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INVALID_DATE_RANGE = ErrorDefinition(
        "INVALID_DATE_RANGE",
        "Inconsistent folder dates",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    FOLDER_HAS_NO_BILL_OF_LADING = ErrorDefinition(
        "FOLDER_HAS_NO_BILL_OF_LADING",
        "Folder has no bill of lading",
        status.HTTP_400_BAD_REQUEST,
    )
    CONTACTS_REQUIRE_BUSINESS_CLIENT = ErrorDefinition(
        "CONTACTS_REQUIRE_BUSINESS_CLIENT",
        "Contacts are only managed for business clients",
        status.HTTP_400_BAD_REQUEST,
    )
    INVALID_PERIOD = ErrorDefinition(
        "INVALID_PERIOD",
        "Period must be YYYY or YYYY-MM",
        status.HTTP_400_BAD_REQUEST,
    )
    BATCH_OPERATION_FAILED = ErrorDefinition(
        "BATCH_OPERATION_FAILED",
        "No client could be processed",
        status.HTTP_400_BAD_REQUEST,
    )
    EMPTY_UPDATE = ErrorDefinition(
        "EMPTY_UPDATE",
        "No updatable field supplied",
        status.HTTP_400_BAD_REQUEST,
    )
    NOT_FOUND = ErrorDefinition("NOT_FOUND", "Resource not found", status.HTTP_404_NOT_FOUND)
    FOLDER_NOT_FOUND = ErrorDefinition("FOLDER_NOT_FOUND", "Folder not found", status.HTTP_404_NOT_FOUND)
    STAGE_NOT_FOUND = ErrorDefinition(
        "STAGE_NOT_FOUND",
        "Stage not found for this folder",
        status.HTTP_404_NOT_FOUND,
    )
    CLIENT_NOT_FOUND = ErrorDefinition("CLIENT_NOT_FOUND", "Client not found", status.HTTP_404_NOT_FOUND)
    CONTACT_NOT_FOUND = ErrorDefinition("CONTACT_NOT_FOUND", "Contact not found", status.HTTP_404_NOT_FOUND)
    BILL_OF_LADING_NOT_FOUND = ErrorDefinition(
        "BILL_OF_LADING_NOT_FOUND",
        "Bill of lading not found",
        status.HTTP_404_NOT_FOUND,
    )
    CONFLICT = ErrorDefinition("CONFLICT", "Resource already exists", status.HTTP_409_CONFLICT)
    VERSION_CONFLICT = ErrorDefinition(
        "VERSION_CONFLICT",
        "Resource has been modified by another user",
        status.HTTP_409_CONFLICT,
    )
    STAGES_ALREADY_INITIALIZED = ErrorDefinition(
        "STAGES_ALREADY_INITIALIZED",
        "Processing stages already exist for this folder",
        status.HTTP_409_CONFLICT,
    )
    STAGE_ALREADY_COMPLETED = ErrorDefinition(
        "STAGE_ALREADY_COMPLETED",
        "Stage is already completed",
        status.HTTP_409_CONFLICT,
    )
    INVALID_STAGE_TRANSITION = ErrorDefinition(
        "INVALID_STAGE_TRANSITION",
        "Stage transition not allowed from current status",
        status.HTTP_409_CONFLICT,
    )
    PREVIOUS_STAGES_INCOMPLETE = ErrorDefinition(
        "PREVIOUS_STAGES_INCOMPLETE",
        "Previous mandatory stages must be completed first",
        status.HTTP_409_CONFLICT,
    )
    STAGE_NOT_SKIPPABLE = ErrorDefinition(
        "STAGE_NOT_SKIPPABLE",
        "Stage cannot be skipped",
        status.HTTP_409_CONFLICT,
    )
    LAST_ACTIVE_CONTACT = ErrorDefinition(
        "LAST_ACTIVE_CONTACT",
        "At least one active contact is required",
        status.HTTP_409_CONFLICT,
    )
    FOLDER_DELETE_PROTECTED = ErrorDefinition(
        "FOLDER_DELETE_PROTECTED",
        "Folder cannot be deleted in its current status",
        status.HTTP_409_CONFLICT,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    CLIENT_VALIDATION_FAILED = ErrorDefinition(
        "CLIENT_VALIDATION_FAILED",
        "Client data failed validation",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REQUIRED = ErrorDefinition(
        "IDEMPOTENCY_KEY_REQUIRED",
        "Idempotency key required",
        status.HTTP_400_BAD_REQUEST,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
