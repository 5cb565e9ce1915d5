"""
Service Errors

Typed rejections raised by the ordering, subscription and delivery services.
Every error carries the HTTP status it maps to and a message that can be
shown to the customer as-is.
"""


class ServiceError(Exception):
    """Base class for all business-rule and persistence rejections."""
    status_code = 500

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self):
        """JSON body for the error response."""
        payload = {'error': self.message}
        payload.update(self.details)
        return payload

    def __repr__(self):
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class ValidationError(ServiceError):
    """Missing or malformed input."""
    status_code = 400


class NotFoundError(ServiceError):
    """Unknown menu item, subscription, user, or a record owned by someone else."""
    status_code = 404


class ConflictError(ServiceError):
    """Request is well-formed but the current state does not allow it."""
    status_code = 409


class InternalError(ServiceError):
    """Persistence failure. The transaction has been rolled back."""
    status_code = 500


class OutOfServiceAreaError(ValidationError):
    """Delivery location is farther from the outlet than the service radius."""

    def __init__(self, distance_km, radius_km):
        self.distance_km = distance_km
        self.radius_km = radius_km
        message = (
            f"Sorry! We don't deliver to your area yet. "
            f"You are {distance_km:.1f}km away, but we only deliver within {radius_km:g}km."
        )
        super().__init__(message, details={
            'distance_km': round(distance_km, 1),
            'service_radius_km': radius_km,
        })
