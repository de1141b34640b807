"""Base exceptions shared by every Admission Engine component."""


class AdmissionEngineError(Exception):
    """Base exception for all Admission Engine errors."""


class ValidationError(AdmissionEngineError):
    """Input is malformed. The caller must fix the request before retrying."""
