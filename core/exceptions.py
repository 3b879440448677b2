from abc import ABC
from enum import Enum


class ErrorKind(str, Enum):
    """
    Failure categories reported by a redemption scan.
    """

    INVALID_INPUT = "invalid_input"
    TRANSPORT = "transport"
    DECODE = "decode"
    CANCELLED = "cancelled"


class BaseCustomException(Exception, ABC):
    """
    Base class for all custom exceptions.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT
    hint: str | None = None

    def __init__(self, message: str | None = None):
        # detail is the caller-supplied cause, None when only the default applies
        self.detail = message or None
        self.message = message or self.get_default_message()
        super().__init__(self.message)

    def get_default_message(self) -> str:
        """
        Return default error message.

        Returns
        -------
        str
            Default error message
        """
        return "error.unknown"

    def get_status_code(self) -> int:
        """
        Return HTTP status code for exception.

        Returns
        -------
        int
            HTTP status code
        """
        return 500


class BadRequestException(BaseCustomException):
    """Bad request exception (400)."""

    kind = ErrorKind.INVALID_INPUT

    def get_status_code(self) -> int:
        return 400


class InvalidInputException(BadRequestException):
    """Invalid scan input exception."""

    def get_default_message(self) -> str:
        return "error.input.invalid"


class InvalidAddressException(InvalidInputException):
    """Invalid address exception."""

    def get_default_message(self) -> str:
        return "error.address.invalid"


class TransportException(BaseCustomException):
    """
    Node communication failure.

    Parameters
    ----------
    message : str | None
        Error message
    error_kind : TxErrorKind | None
        Typed cause reported by the connection layer
    reason : str | None
        Contract revert reason
    short_message : str | None
        Short provider-level message
    rpc_message : str | None
        Message of the JSON-RPC error object
    """

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str | None = None,
        error_kind=None,
        reason: str | None = None,
        short_message: str | None = None,
        rpc_message: str | None = None
    ):
        self.error_kind = error_kind
        self.reason = reason
        self.short_message = short_message
        self.rpc_message = rpc_message
        super().__init__(message)

    def get_default_message(self) -> str:
        return "error.rpc.failed"

    def get_status_code(self) -> int:
        return 502


class DecodeException(BaseCustomException):
    """Event log decode failure."""

    kind = ErrorKind.DECODE

    def get_default_message(self) -> str:
        return "error.log.decode_failed"

    def get_status_code(self) -> int:
        return 502


class ScanCancelledException(BaseCustomException):
    """Scan stopped before completion."""

    kind = ErrorKind.CANCELLED

    def get_default_message(self) -> str:
        return "error.scan.cancelled"

    def get_status_code(self) -> int:
        return 504


EXCEPTIONS_BY_KIND: dict[ErrorKind, type[BaseCustomException]] = {
    ErrorKind.INVALID_INPUT: InvalidInputException,
    ErrorKind.TRANSPORT: TransportException,
    ErrorKind.DECODE: DecodeException,
    ErrorKind.CANCELLED: ScanCancelledException,
}


def exception_for_kind(
    kind: ErrorKind,
    message: str | None = None,
    hint: str | None = None
) -> BaseCustomException:
    """
    Build the exception matching a scan failure kind.

    Parameters
    ----------
    kind : ErrorKind
        Failure kind
    message : str | None
        Error message
    hint : str | None
        User-facing explanation shown next to the message

    Returns
    -------
    BaseCustomException
        Exception instance for the kind
    """
    exception = EXCEPTIONS_BY_KIND[kind](message)
    exception.hint = hint
    return exception
