import hashlib
import json
from dataclasses import dataclass
from datetime import datetime

from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.db.models import IdempotencyRecord
from app.freight.repos.idempotency import IdempotencyRepository


IDEMPOTENCY_HEADER = "Idempotency-Key"
IDEMPOTENCY_RESULT_HEADER = "X-Idempotency-Result"


@dataclass
class IdempotencyReplay:
    status_code: int
    response_body: dict

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=self.response_body,
            headers={IDEMPOTENCY_RESULT_HEADER: ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )


class IdempotencyContext:
    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository):
        self._record = record
        self._repo = repo

    def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._finish("succeeded", status_code, response_body)

    def record_failure(self, *, status_code: int, response_body: dict) -> None:
        # Drop whatever the failed request left pending before storing the outcome.
        self._repo.db.rollback()
        self._finish("failed", status_code, response_body)

    def _finish(self, state: str, status_code: int, response_body: dict) -> None:
        self._record.status_code = status_code
        self._record.response_body = json.dumps(response_body, default=str)
        self._record.state = state
        self._record.updated_at = datetime.utcnow()
        self._repo.save(self._record)


class IdempotencyService:
    def __init__(self, db):
        self.repo = IdempotencyRepository(db)

    @staticmethod
    def fingerprint(payload: object) -> str:
        payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload_bytes).hexdigest()

    def start(
        self,
        *,
        tenant_id: str,
        endpoint: str,
        method: str,
        idempotency_key: str,
        request_hash: str,
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        lookup = dict(tenant_id=tenant_id, endpoint=endpoint, method=method, idempotency_key=idempotency_key)
        existing = self.repo.get_by_key(**lookup)
        if existing:
            return self._handle_existing(existing, request_hash)

        record = IdempotencyRecord(
            **lookup,
            request_hash=request_hash,
            state="in_progress",
            status_code=None,
            response_body=None,
        )
        try:
            record = self.repo.save(record)
        except IntegrityError:
            self.repo.db.rollback()
            return self._handle_existing(self.repo.get_by_key(**lookup), request_hash)

        return IdempotencyContext(record, self.repo), None

    @staticmethod
    def _handle_existing(
        existing: IdempotencyRecord | None, request_hash: str
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        if existing is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.request_hash != request_hash:
            raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD)
        if existing.state == "in_progress" or existing.response_body is None or existing.status_code is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        return None, IdempotencyReplay(
            status_code=existing.status_code,
            response_body=json.loads(existing.response_body),
        )


def extract_idempotency_key(headers, *, required: bool) -> str | None:
    key = headers.get(IDEMPOTENCY_HEADER)
    if not key and required:
        raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REQUIRED)
    return key
