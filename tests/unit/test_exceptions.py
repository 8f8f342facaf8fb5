"""Unit tests for exception handling system.

Tests both the exception hierarchy and the exception handler utilities,
including negative tests to verify correct exceptions are raised.
"""

import json
import logging

import pytest

from sopdesk.common.exception_handler import (
    format_exception_json,
    get_error_code,
    get_http_status_code,
    log_exception,
)
from sopdesk.core.domain.exceptions import (
    ConfigurationError,
    EmptyQueryError,
    ExtractionError,
    MissingCredentialsError,
    PageNotFoundError,
    RaiseSite,
    SearchDegradationError,
    SopDeskError,
    SourceError,
    SourceUnavailableError,
    StorageError,
    ValidationError,
)

# Apply @pytest.mark.unit to all tests in this module
pytestmark = pytest.mark.unit


class TestExceptionHierarchy:
    """Tests for the exception class hierarchy."""

    def test_sop_desk_error_is_base(self):
        """SopDeskError should be the base for all custom exceptions."""
        for cls in (
            ConfigurationError,
            SourceError,
            ExtractionError,
            SearchDegradationError,
            StorageError,
            ValidationError,
        ):
            assert issubclass(cls, SopDeskError)

    def test_source_errors_inherit_from_source_error(self):
        assert issubclass(SourceUnavailableError, SourceError)
        assert issubclass(PageNotFoundError, SourceError)

    def test_empty_query_is_a_validation_error(self):
        assert issubclass(EmptyQueryError, ValidationError)

    def test_missing_credentials_is_a_configuration_error(self):
        assert issubclass(MissingCredentialsError, ConfigurationError)


class TestExceptionCreation:
    """Tests for creating and using exceptions."""

    def test_basic_exception_creation(self):
        """Basic exception should have message and error code."""
        exc = SopDeskError("Test error message")
        assert str(exc) == "Test error message"
        assert exc.message == "Test error message"
        assert exc.error_code == "SOP_ERR_001"

    def test_exception_with_context(self):
        exc = SourceUnavailableError(
            "Connection failed", context={"path": "/rest/api/content", "timeout": 30}
        )
        assert exc.extra_context["path"] == "/rest/api/content"
        assert exc.extra_context["timeout"] == 30

    def test_exception_with_cause(self):
        original = ConnectionError("Network unreachable")
        exc = SourceUnavailableError("Connection failed", cause=original)
        assert exc.cause is original

    def test_exception_captures_location(self):
        """Exception should capture the method that raised it."""
        exc = SopDeskError("Test")
        assert exc.location.method_name == "test_exception_captures_location"
        assert exc.location.class_name == "TestExceptionCreation"
        assert exc.location.file_name == "test_exceptions.py"
        assert exc.location.line_number > 0

    def test_location_skips_subclass_init(self):
        """A subclass with its own __init__ still reports the raising frame."""

        class PageError(SourceError):
            def __init__(self, page_id: str) -> None:
                super().__init__(f"Page {page_id} failed", context={"page_id": page_id})

        exc = PageError("42")
        assert exc.location.method_name == "test_location_skips_subclass_init"
        assert exc.extra_context == {"page_id": "42"}

    def test_missing_frame_location(self):
        assert RaiseSite.from_frame(None).to_dict() == {
            "class": "<unknown>",
            "method": "<unknown>",
            "file": "<unknown>",
            "line": 0,
        }

    def test_each_exception_has_unique_error_code(self):
        exceptions = [
            SopDeskError("test"),
            ConfigurationError("test"),
            MissingCredentialsError("test"),
            SourceError("test"),
            SourceUnavailableError("test"),
            PageNotFoundError("test"),
            ExtractionError("test"),
            SearchDegradationError("test"),
            StorageError("test"),
            ValidationError("test"),
            EmptyQueryError("test"),
        ]
        codes = {exc.error_code for exc in exceptions}
        assert len(codes) == len(exceptions)


class TestExceptionToDict:
    """Tests for exception JSON serialization."""

    def test_to_dict_basic_structure(self):
        result = SourceUnavailableError("Test error").to_dict()

        assert result["error"] == {
            "type": "SourceUnavailableError",
            "code": "SOP_SRC_002",
            "message": "Test error",
        }
        assert set(result["location"]) == {"class", "method", "file", "line"}

    def test_to_dict_includes_context_and_cause(self):
        exc = ExtractionError(
            "Bad page", cause=ValueError("Bad markup"), context={"page_id": "42"}
        )
        result = exc.to_dict()

        assert result["context"]["page_id"] == "42"
        assert result["cause"] == {"type": "ValueError", "message": "Bad markup"}

    def test_to_dict_excludes_trace_by_default(self):
        exc = ValidationError("Invalid input", cause=ValueError("Bad value"))
        assert "stack_trace" not in exc.to_dict()

    def test_to_dict_includes_trace_when_raised_from_handler(self):
        try:
            try:
                raise ValueError("Bad value")
            except ValueError as e:
                raise ValidationError("Invalid input", cause=e) from e
        except ValidationError as exc:
            result = exc.to_dict(include_trace=True)

        assert any("ValueError" in line for line in result["stack_trace"])

    def test_to_dict_is_json_serializable(self):
        exc = StorageError("Write failed", context={"db_path": "data/sop_index.db", "rows": 3})
        assert isinstance(json.dumps(exc.to_dict()), str)


class TestExceptionHandler:
    """Tests for exception handler utilities."""

    def test_format_custom_exception(self):
        result = format_exception_json(PageNotFoundError("Missing", context={"path": "/x"}))
        assert result["error"]["type"] == "PageNotFoundError"
        assert result["error"]["code"] == "SOP_SRC_003"

    def test_format_standard_exception(self):
        try:
            raise ValueError("Standard error")
        except ValueError as e:
            result = format_exception_json(e, include_trace=True)

        assert result["error"] == {
            "type": "ValueError",
            "code": "PYTHON_ERR",
            "message": "Standard error",
        }
        assert result["location"]["method"] == "test_format_standard_exception"
        assert result["stack_trace"]

    def test_format_adds_extra_context(self):
        exc = SourceUnavailableError("Test", context={"path": "original"})
        result = format_exception_json(exc, extra_context={"request_id": "abc123"})

        assert result["context"] == {"path": "original", "request_id": "abc123"}

    def test_log_exception_writes_json(self, caplog):
        log = logging.getLogger("sopdesk.test")
        with caplog.at_level(logging.WARNING, logger="sopdesk.test"):
            log_exception(StorageError("disk full"), log=log, level=logging.WARNING)

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["error"]["code"] == "SOP_STO_001"
        assert caplog.records[-1].levelno == logging.WARNING

    def test_get_error_code(self):
        assert get_error_code(SourceUnavailableError("test")) == "SOP_SRC_002"
        assert get_error_code(EmptyQueryError("test")) == "SOP_VAL_002"
        assert get_error_code(RuntimeError("test")) == "PYTHON_ERR"


class TestHTTPStatusCodes:
    """Tests for HTTP status code mapping."""

    @pytest.mark.parametrize(
        "exc,status",
        [
            (ValidationError("test"), 400),
            (EmptyQueryError("test"), 400),
            (PageNotFoundError("test"), 404),
            (SourceUnavailableError("test"), 503),
            (StorageError("test"), 503),
            (ConfigurationError("test"), 500),
            (MissingCredentialsError("test"), 500),
            (ExtractionError("test"), 500),
            (SopDeskError("test"), 500),
            (ValueError("test"), 400),
            (ConnectionError("test"), 503),
            (TimeoutError("test"), 503),
            (RuntimeError("test"), 500),
        ],
    )
    def test_status_mapping(self, exc, status):
        assert get_http_status_code(exc) == status


class TestExceptionCatchPatterns:
    """Tests for exception catching patterns."""

    def test_catch_source_errors_together(self):
        for exc in (SourceUnavailableError("test"), PageNotFoundError("test")):
            try:
                raise exc
            except SourceError as caught:
                assert caught.error_code.startswith("SOP_SRC")

    def test_exception_context_preserved(self):
        try:
            try:
                raise ConnectionError("Network down")
            except Exception as e:
                raise SourceUnavailableError(
                    "Failed to connect", cause=e, context={"path": "/x", "attempt": 3}
                ) from e
        except SourceUnavailableError as exc:
            assert exc.extra_context["attempt"] == 3
            assert isinstance(exc.cause, ConnectionError)
            assert exc.__cause__ is exc.cause
