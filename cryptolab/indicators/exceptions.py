"""
Custom exceptions for the candle and indicator modules.

This module defines all custom exceptions raised while loading candle data,
validating it, and configuring indicators. Indicator *compute* failures are
never raised: they are reported on the affected IndicatorResult.
"""

from typing import Any, List


class IndicatorError(Exception):
    """Base exception for all candle and indicator errors."""

    pass


class LoaderError(IndicatorError):
    """Exception raised when loading candle data fails."""

    pass


class DataFileNotFoundError(LoaderError):
    """Exception raised when the candle file is not found."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        super().__init__(f"File not found: {file_path}")


class EmptyFileError(LoaderError):
    """Exception raised when the candle file is empty."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        super().__init__(f"File is empty: {file_path}")


class ValidationError(IndicatorError):
    """Exception raised when data validation fails."""

    pass


class MissingColumnError(ValidationError):
    """Exception raised when required columns are missing."""

    def __init__(self, missing_columns: List[str]) -> None:
        self.missing_columns = missing_columns
        message = f"Missing required columns: {', '.join(missing_columns)}"
        super().__init__(message)


class InvalidDataTypeError(ValidationError):
    """Exception raised when data types cannot be converted."""

    def __init__(self, column: str, details: str = "") -> None:
        self.column = column
        message = f"Invalid data type in column '{column}'"
        if details:
            message += f": {details}"
        super().__init__(message)


class MalformedInputError(ValidationError):
    """Exception raised when a candle series violates its invariants."""

    def __init__(self, index: int, details: str = "") -> None:
        self.index = index
        message = f"Malformed candle at index {index}"
        if details:
            message += f": {details}"
        super().__init__(message)


class NonMonotonicTimeError(MalformedInputError):
    """Exception raised when candle times go backwards."""

    pass


class DuplicateTimeError(MalformedInputError):
    """Exception raised when two candles share a timestamp."""

    pass


class OHLCInvariantError(MalformedInputError):
    """Exception raised when open/close fall outside the low/high range."""

    pass


class NegativeVolumeError(MalformedInputError):
    """Exception raised when a candle has negative volume."""

    pass


class InvalidParameterError(ValidationError):
    """Exception raised when a parameter is outside its declared schema."""

    def __init__(self, param_name: str, value: Any, reason: str = "") -> None:
        self.param_name = param_name
        self.value = value
        message = f"Invalid parameter '{param_name}': {value!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class RegistryError(IndicatorError):
    """Exception raised when an indicator cannot be registered."""

    pass


class UnknownIndicatorError(RegistryError):
    """Exception raised when an indicator id is not in the registry."""

    def __init__(self, indicator_id: str) -> None:
        self.indicator_id = indicator_id
        super().__init__(f"Unknown indicator: {indicator_id}")
