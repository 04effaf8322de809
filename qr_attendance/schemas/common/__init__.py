from .error import ErrorResponse

__all__ = ['ErrorResponse']
