"""
Service-layer exceptions

Services raise these; the error handler registered in create_app turns
them into JSON responses with the matching status code.
"""


class ServiceError(Exception):
    """Base class for expected business-rule failures"""

    status_code = 400

    def __init__(self, message, details=None, status_code=None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        data = {'error': self.message}
        if self.details:
            data['details'] = self.details
        return data


class ValidationError(ServiceError):
    status_code = 400


class AuthorizationError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class EscrowError(ServiceError):
    """Escrow state does not allow the operation, or the gateway failed"""
    status_code = 400
