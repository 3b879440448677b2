import asyncio
from enum import Enum

import aiohttp
from web3.exceptions import ContractLogicError

from core.exceptions import BaseCustomException, TransportException


class TxErrorKind(str, Enum):
    """
    Typed causes surfaced by the connection layer.
    """

    REJECTED_BY_USER = "rejected_by_user"
    NETWORK_UNREACHABLE = "network_unreachable"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NONCE_CONFLICT = "nonce_conflict"
    EXECUTION_REVERTED = "execution_reverted"
    LIMIT_EXCEEDED = "limit_exceeded"
    UNKNOWN = "unknown"


TX_ERROR_MESSAGES: dict[TxErrorKind, str] = {
    TxErrorKind.REJECTED_BY_USER: "Transaction rejected by user",
    TxErrorKind.NETWORK_UNREACHABLE: "Network error: RPC node not responding",
    TxErrorKind.INSUFFICIENT_FUNDS: "Insufficient balance for gas",
    TxErrorKind.NONCE_CONFLICT: "Nonce mismatch. Try again",
    TxErrorKind.EXECUTION_REVERTED: "Smart contract rejected the transaction",
    TxErrorKind.LIMIT_EXCEEDED: "Node query limit exceeded. Try a narrower block range",
    TxErrorKind.UNKNOWN: "Transaction failed. Please try again",
}

# EIP-1193 / EIP-1474 / geth JSON-RPC error codes
USER_REJECTED_CODE = 4001
EXECUTION_REVERTED_CODE = 3
LIMIT_EXCEEDED_CODE = -32005
SERVER_ERROR_CODE = -32000

# Nodes report these under the generic server error code only.
SERVER_ERROR_MARKERS: tuple[tuple[str, TxErrorKind], ...] = (
    ("nonce", TxErrorKind.NONCE_CONFLICT),
    ("insufficient funds", TxErrorKind.INSUFFICIENT_FUNDS),
    ("execution reverted", TxErrorKind.EXECUTION_REVERTED),
    ("limit exceeded", TxErrorKind.LIMIT_EXCEEDED),
    ("query returned more than", TxErrorKind.LIMIT_EXCEEDED),
    ("block range", TxErrorKind.LIMIT_EXCEEDED),
)


def _rpc_error(exc: BaseException) -> dict:
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict) and isinstance(response.get("error"), dict):
        return response["error"]
    return {}


def classify_error(exc: BaseException) -> TxErrorKind:
    """
    Map an exception raised while talking to a node to a typed cause.

    Parameters
    ----------
    exc : BaseException
        Exception raised by web3, aiohttp or a connection adapter

    Returns
    -------
    TxErrorKind
        Typed error kind, ``UNKNOWN`` when nothing matches
    """
    if isinstance(exc, TransportException) and exc.error_kind is not None:
        return exc.error_kind
    if isinstance(exc, ContractLogicError):
        return TxErrorKind.EXECUTION_REVERTED
    if isinstance(exc, (aiohttp.ClientError, ConnectionError, asyncio.TimeoutError)):
        return TxErrorKind.NETWORK_UNREACHABLE

    error = _rpc_error(exc)
    code = error.get("code")
    if code == USER_REJECTED_CODE:
        return TxErrorKind.REJECTED_BY_USER
    if code == EXECUTION_REVERTED_CODE:
        return TxErrorKind.EXECUTION_REVERTED
    if code == LIMIT_EXCEEDED_CODE:
        return TxErrorKind.LIMIT_EXCEEDED
    if code == SERVER_ERROR_CODE:
        node_message = str(error.get("message", "")).lower()
        for marker, kind in SERVER_ERROR_MARKERS:
            if marker in node_message:
                return kind

    return TxErrorKind.UNKNOWN


def _first_line(exc: BaseException) -> str | None:
    lines = str(exc).strip().splitlines()
    return lines[0] if lines else None


def describe_failure(exc: BaseException, default: str) -> str:
    """
    Pick the most specific human-readable cause of a failure.

    Precedence: contract revert reason, short provider message, JSON-RPC
    error message, exception message, then ``default``.

    Parameters
    ----------
    exc : BaseException
        Failure to describe
    default : str
        Generic fallback message

    Returns
    -------
    str
        Failure description
    """
    if isinstance(exc, BaseCustomException):
        message = exc.detail
    elif _rpc_error(exc):
        # web3 uses the repr of the error object as the exception text
        message = None
    else:
        message = str(exc)

    candidates = (
        getattr(exc, "reason", None),
        getattr(exc, "short_message", None),
        getattr(exc, "rpc_message", None) or _rpc_error(exc).get("message"),
        message,
    )
    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate
    return default


def to_transport_exception(exc: BaseException) -> TransportException:
    """
    Wrap a raw node failure into a typed ``TransportException``.

    The exception message is left unset when the failure carries no cause
    of its own, so callers can fall back to their generic message.

    Parameters
    ----------
    exc : BaseException
        Original exception

    Returns
    -------
    TransportException
        Typed transport failure (``exc`` itself if already typed)
    """
    if isinstance(exc, TransportException):
        return exc

    kind = classify_error(exc)
    rpc_error = _rpc_error(exc)
    rpc_message = rpc_error.get("message") or None

    reason = None
    detail = None
    if isinstance(exc, ContractLogicError):
        reason = exc.message or None
    # RPC errors carry the repr of the error object as their text
    elif not rpc_error:
        detail = _first_line(exc)

    return TransportException(
        message=reason or rpc_message or detail,
        error_kind=kind,
        reason=reason,
        rpc_message=rpc_message,
    )


def parse_tx_error(exc: BaseException) -> str:
    """
    User-facing message for a failed chain interaction.
    """
    return TX_ERROR_MESSAGES[classify_error(exc)]
