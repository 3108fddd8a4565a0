__all__ = [
    "EntryNotFoundError",
    "MissingFieldError",
    "NoSuchBuildIdentityError",
    "PyTSSException",
    "TSSError",
    "TSSProtocolError",
    "TSSTransportError",
    "TypeMismatchError",
]

from typing import Optional


class PyTSSException(Exception):
    pass


class MissingFieldError(PyTSSException):
    """A required key is absent from a caller-supplied document"""

    def __init__(self, key: str, where: str = "parameters") -> None:
        super().__init__(f"missing required {key} in {where}")
        self.key = key
        self.where = where


class TypeMismatchError(PyTSSException):
    """A key is present but holds a value of an unexpected type"""

    def __init__(self, key: str, expected: str, actual: str, where: str = "parameters") -> None:
        super().__init__(f"{key} in {where} is {actual}, expected {expected}")
        self.key = key
        self.expected = expected
        self.actual = actual
        self.where = where


class EntryNotFoundError(PyTSSException):
    def __init__(self, key: str) -> None:
        super().__init__(f"no {key} entry in TSS response")
        self.key = key


class NoSuchBuildIdentityError(PyTSSException):
    pass


class TSSError(PyTSSException):
    """An unexpected message was received from apple ticket server"""

    pass


class TSSTransportError(TSSError):
    def __init__(
        self,
        status: Optional[int],
        message: Optional[str] = None,
        transport_error: Optional[str] = None,
        attempts: int = 0,
    ) -> None:
        if message is not None:
            text = f"TSS request failed (status={status}, message={message})"
        else:
            text = f"TSS request failed: {transport_error} (status={status})"
        super().__init__(text)
        self.status = status
        self.message = message
        self.transport_error = transport_error
        self.attempts = attempts


class TSSProtocolError(TSSError):
    """Successful TSS response without a property list payload"""

    pass
