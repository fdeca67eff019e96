"""
Custom exceptions of the calibration document system.
"""


class LabDocsError(Exception):
    """Base exception for all document system errors."""
    pass


class RecordNotFoundError(LabDocsError):
    """Certificate or service record not found."""
    pass


class DatabaseError(LabDocsError):
    """Record store failure."""
    pass


class CounterStoreError(LabDocsError):
    """Fiscal counter cannot be read or written."""
    pass


class SerialAllocationError(LabDocsError):
    """Certificate number could not be allocated durably."""
    pass


class GenerationError(LabDocsError):
    """Record ID generation failure."""
    pass


class StorageError(LabDocsError):
    """Rendered document store failure."""
    pass


class DocumentGenerationError(LabDocsError):
    """PDF document could not be generated."""
    pass
