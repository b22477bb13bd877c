"""
core/exceptions.py
------------------
Custom exception hierarchy for the billchart system.
"""


class BillChartError(Exception):
    """Root exception for all billchart-specific errors."""


# --- Ingestion ---

class IngestionError(BillChartError):
    """Raised when an input photo cannot be read."""


class ImageDecodeError(IngestionError):
    """Raised when the image bytes are corrupt or in an unsupported format."""


# --- Processing ---

class ProcessingError(BillChartError):
    """Raised when a geometry stage fails unexpectedly."""


# --- Recognition ---

class RecognitionError(BillChartError):
    """Raised when the recognition engine fails for a whole request."""


class EngineUnavailableError(RecognitionError):
    """Raised when the recognition engine cannot be started."""


class RecognitionTimeoutError(RecognitionError):
    """Raised when a single recognition call exceeds its time budget."""


# --- Configuration ---

class ConfigError(BillChartError):
    """Raised when the configuration file is missing or invalid."""


# --- Requests ---

class RequestCancelledError(BillChartError):
    """Raised when a newer request superseded the one being processed."""
