from __future__ import annotations

from recipe_importer.services.errors import (
    FetchFailedError,
    GeminiConfigurationError,
    GeminiPromptError,
    InvalidURLError,
    ModelInvocationError,
    NetworkTimeoutError,
    PrivateOrUnavailableError,
    RateLimitedError,
    ServiceError,
    UnsupportedPlatformError,
)


class TestServiceError:
    def test_base_exception(self) -> None:
        error = ServiceError("Base service error")
        assert str(error) == "Base service error"
        assert isinstance(error, Exception)


class TestSimpleServiceErrors:
    def test_subclasses(self) -> None:
        for error_type in (
            InvalidURLError,
            UnsupportedPlatformError,
            PrivateOrUnavailableError,
            RateLimitedError,
            FetchFailedError,
            GeminiConfigurationError,
            GeminiPromptError,
        ):
            error = error_type("details")
            assert isinstance(error, ServiceError)
            assert str(error) == "details"


class TestModelInvocationError:
    def test_with_status_code(self) -> None:
        error = ModelInvocationError("Internal error", status_code=500)
        assert str(error) == "Model request failed (HTTP 500): Internal error"
        assert error.status_code == 500

    def test_without_status_code(self) -> None:
        error = ModelInvocationError("Connection reset")
        assert str(error) == "Model request failed: Connection reset"
        assert error.status_code is None


class TestNetworkTimeoutError:
    def test_includes_url_and_timeout(self) -> None:
        error = NetworkTimeoutError("https://example.com/recipe", 15.0)
        assert "15.0s" in str(error)
        assert "https://example.com/recipe" in str(error)
        assert error.timeout_seconds == 15.0
