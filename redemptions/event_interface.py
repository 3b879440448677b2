from typing import Any, Mapping

from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.exceptions import InvalidEventABI, LogTopicError, MismatchedABI, Web3Exception

from core.exceptions import DecodeException, InvalidInputException


def to_hex(value: Any) -> str:
    """Normalize bytes / HexBytes / hex string to a 0x-prefixed lowercase hex string."""
    return "0x" + bytes(HexBytes(value)).hex()


class EventInterface:
    """
    Event view over a contract ABI.

    Resolves event names to topic hashes and decodes raw logs into
    named parameters with the web3 contract event machinery. No node is
    contacted: the contract is built from the ABI alone.

    Parameters
    ----------
    abi : list[dict[str, Any]]
        Contract ABI (only ``event`` entries are used)

    Raises
    ------
    InvalidInputException
        If web3 rejects the ABI
    """

    def __init__(self, abi: list[dict[str, Any]]):
        self.abi = abi
        self._events = {
            item["name"]: item
            for item in abi
            if item.get("type") == "event" and "name" in item
        }
        try:
            self.contract = AsyncWeb3().eth.contract(abi=abi)
        except (Web3Exception, TypeError, ValueError) as e:
            raise InvalidInputException(f"Invalid contract ABI: {e}") from e

    @property
    def event_names(self) -> list[str]:
        return list(self._events)

    def has_event(self, name: str) -> bool:
        return name in self._events

    def get_event(self, name: str) -> dict[str, Any]:
        """
        Get the ABI entry of an event.

        Parameters
        ----------
        name : str
            Event name

        Returns
        -------
        dict[str, Any]
            Event ABI entry

        Raises
        ------
        InvalidInputException
            If the ABI does not define the event
        """
        if name not in self._events:
            raise InvalidInputException(f"Event {name} not found in ABI")
        return self._events[name]

    def _contract_event(self, name: str):
        self.get_event(name)
        return self.contract.events[name]

    def topic_hash(self, name: str) -> str:
        """
        Get the signature hash (topic0) of an event.

        Parameters
        ----------
        name : str
            Event name

        Returns
        -------
        str
            0x-prefixed keccak hash of the canonical event signature
        """
        return to_hex(self._contract_event(name).topic)

    def decode_log(self, name: str, log: Mapping[str, Any]) -> dict[str, Any]:
        """
        Decode a raw log entry into named event parameters.

        Indexed reference types (``string``, ``bytes``, arrays, tuples) are
        returned as their 32-byte topic hash.

        Parameters
        ----------
        name : str
            Expected event name
        log : Mapping[str, Any]
            Raw log as returned by ``eth_getLogs``

        Returns
        -------
        dict[str, Any]
            Parameter name to decoded value

        Raises
        ------
        DecodeException
            If the log is not an occurrence of the event or its payload
            cannot be ABI-decoded
        """
        event = self._contract_event(name)
        log_ref = f"{name} log in block {log.get('blockNumber')}"

        try:
            decoded = event.process_log(log)
        except MismatchedABI as e:
            raise DecodeException(f"Unexpected event signature for {log_ref}: {e}") from e
        except LogTopicError as e:
            raise DecodeException(f"Unexpected indexed topics for {log_ref}: {e}") from e
        except (InvalidEventABI, DecodingError, KeyError, TypeError, ValueError) as e:
            raise DecodeException(f"Failed to decode {log_ref}: {e}") from e

        return dict(decoded["args"])
