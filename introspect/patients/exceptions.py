"""
Patient registry exceptions.
"""
from ..exceptions import ConflictException, ResourceNotFoundException


class PatientNotFoundException(ResourceNotFoundException):
    """Exception raised when a patient id or code is not registered."""
    def __init__(self, detail: str = "Patient not found"):
        super().__init__(detail)


class PatientCodeExistsException(ConflictException):
    """Exception raised when registering a patient code that is already taken."""
    def __init__(self, detail: str = "Patient with this code already exists"):
        super().__init__(detail)
