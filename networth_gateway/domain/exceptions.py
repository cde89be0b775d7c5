"""Domain-specific exceptions"""

from typing import Iterable


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class MissingRequiredInputError(DomainException):
    """Profile lacks a field the estimator cannot guess (caller-visible)"""

    def __init__(self, missing_fields: Iterable[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(f"Missing required input: {', '.join(self.missing_fields)}")


class FallbackTableError(DomainException):
    """Static fallback tables are malformed or incomplete (deployment defect)"""

    pass


class DataSourceError(DomainException):
    """External data source timed out, errored, or returned unusable data"""

    pass


class FredAPIError(DataSourceError):
    """FRED time-series API error or missing observation"""

    pass


class CensusAPIError(DataSourceError):
    """Census ACS API error or suppressed estimate"""

    pass


class BlsAPIError(DataSourceError):
    """BLS public data API error or missing observation"""

    pass


class ReasoningServiceError(DomainException):
    """Reasoning service unavailable or returned an error"""

    pass


class MalformedRefinementError(DomainException):
    """Reasoning service response does not match the expected shape"""

    pass
