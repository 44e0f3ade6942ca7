"""Exception hierarchy for the profile analyzer."""

from typing import Any, Dict, Optional


class ProfileAnalyzerError(Exception):
    """Base exception for all profile analyzer errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}
        super().__init__(self.message)


class ExtractionError(ProfileAnalyzerError):
    """A section could not be read from the profile document."""

    def __init__(self, message: str, section: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        if section:
            error_details["section"] = section
        super().__init__(message=message, error_code="EXTRACTION_ERROR", details=error_details)


class QualityRequestError(ProfileAnalyzerError):
    """The external quality analysis call failed or returned garbage."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_code="QUALITY_REQUEST_ERROR", details=details)


class ConfigError(ProfileAnalyzerError):
    """Configuration is missing or unusable."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, error_code="CONFIG_ERROR", details=details)


class RateLimitError(QualityRequestError):
    """The AI provider's request budget is spent; retry after ``retry_after`` seconds."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            message=f"Rate limit exceeded. Please wait {retry_after} seconds.",
            details={"retry_after": retry_after},
        )
        self.error_code = "RATE_LIMIT_ERROR"
