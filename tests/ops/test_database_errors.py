from sqlalchemy.exc import IntegrityError, OperationalError

from app.freight.core.error_catalog import ErrorCatalog
from app.freight.core.errors import classify_database_error


def _operational(message: str) -> OperationalError:
    return OperationalError("UPDATE folders SET status=?", {}, Exception(message))


def test_lock_timeouts_win():
    assert classify_database_error(_operational("database is locked")) is ErrorCatalog.LOCK_TIMEOUT
    assert classify_database_error(_operational("deadlock detected; version mismatch")) is ErrorCatalog.LOCK_TIMEOUT


def test_message_families():
    duplicate = IntegrityError("INSERT INTO clients", {}, Exception("UNIQUE constraint failed: clients.email"))
    assert classify_database_error(duplicate) is ErrorCatalog.CONFLICT
    assert classify_database_error(Exception("row not found")) is ErrorCatalog.NOT_FOUND
    assert classify_database_error(Exception("stale version of row")) is ErrorCatalog.VERSION_CONFLICT
    assert classify_database_error(Exception("disk I/O error")) is ErrorCatalog.INTERNAL_ERROR


def test_not_found_is_checked_before_duplicate():
    error = Exception("parent not found, duplicate key ignored")
    assert classify_database_error(error) is ErrorCatalog.NOT_FOUND


def test_lock_words_outside_operational_errors_are_not_lock_timeouts():
    assert classify_database_error(Exception("database is locked")) is ErrorCatalog.INTERNAL_ERROR


def test_statement_text_does_not_drive_classification():
    error = OperationalError(
        "UPDATE clients SET status=?, version=? WHERE clients.id = ? AND clients.version = ?",
        {},
        Exception("disk I/O error"),
    )
    assert classify_database_error(error) is ErrorCatalog.INTERNAL_ERROR


def test_driver_message_still_classified_when_wrapped():
    error = IntegrityError("UPDATE clients SET version=?", {}, Exception("row version is stale"))
    assert classify_database_error(error) is ErrorCatalog.VERSION_CONFLICT
