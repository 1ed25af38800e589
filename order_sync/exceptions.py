"""
Exceptions raised while synchronizing remote orders into the local ledger.

Per-order errors (ValidationError, PersistenceError and ConfigurationError
raised while building one document) are caught by the synchronizer and
written to the import log. Invocation-level errors (ConnectivityError and
ConfigurationError raised before any order is touched) propagate to the
caller.
"""


class SyncError(Exception):
    """Base exception for all sync errors"""
    def __init__(self, message, error_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self):
        return {
            'error': True,
            'message': self.message,
            'error_code': self.error_code,
            'details': self.details
        }


class ConnectivityError(SyncError):
    """Remote webservice unreachable or credentials rejected"""
    def __init__(self, message, status_code=None, details=None):
        super().__init__(message, 'CONNECTIVITY_ERROR', details)
        self.status_code = status_code


class ConfigurationError(SyncError):
    """Missing or unusable configuration (reference products, status set, ...)"""
    def __init__(self, message, details=None):
        super().__init__(message, 'CONFIGURATION_ERROR', details)


class ValidationError(SyncError):
    """Remote data cannot be turned into a valid local record"""
    def __init__(self, message, field=None, details=None):
        super().__init__(message, 'VALIDATION_ERROR', details)
        self.field = field


class PersistenceError(SyncError):
    """Local storage rejected a write"""
    def __init__(self, message, details=None):
        super().__init__(message, 'PERSISTENCE_ERROR', details)


class DuplicateDocumentError(PersistenceError):
    """A document with the same cross reference was committed first"""
    def __init__(self, cross_reference, details=None):
        super().__init__(f"Document with cross reference {cross_reference} already exists", details)
        self.error_code = 'DUPLICATE_DOCUMENT'
        self.cross_reference = cross_reference


class MappingWarning(UserWarning):
    """Unmapped tax rate or payment method. Recorded, never raised."""
