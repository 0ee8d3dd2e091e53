"""Pure ABI helpers for contract reads and Multicall3: no I/O."""
from __future__ import annotations

from typing import Any, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_bytes

from ...models import ReadDescriptor, ReadResult, ReadStatus

#: Multicall3 is deployed at the same address on every supported chain.
MULTICALL3_ADDRESS = "0xca11bde05977b3631167028862be2a173976ca11"

_AGGREGATE3_SIGNATURE = "aggregate3((address,bool,bytes)[])"
_AGGREGATE3_CALL_TYPE = "(address,bool,bytes)[]"
_AGGREGATE3_RETURN_TYPE = "(bool,bytes)[]"


def argument_types(function_signature: str) -> list[str]:
    """Split a flat ABI signature into its argument types.

    Examples:
        "market(bytes32)" → ["bytes32"]
        "position(bytes32,address)" → ["bytes32", "address"]
    """
    open_idx = function_signature.find("(")
    if open_idx <= 0 or not function_signature.endswith(")"):
        raise ValueError(f"Malformed function signature: {function_signature!r}")
    inner = function_signature[open_idx + 1 : -1]
    if "(" in inner:
        raise ValueError(f"Tuple arguments are not supported: {function_signature!r}")
    return [t.strip() for t in inner.split(",")] if inner else []


def _normalize_argument(abi_type: str, value: Any) -> Any:
    if abi_type == "address" and isinstance(value, str):
        return value.lower()
    if abi_type.startswith("bytes") and isinstance(value, str):
        return to_bytes(hexstr=value)
    return value


def encode_call(descriptor: ReadDescriptor) -> bytes:
    """Build selector + encoded arguments for one read."""
    types = argument_types(descriptor.function_signature)
    if len(types) != len(descriptor.arguments):
        raise ValueError(
            f"{descriptor.function_signature} expects {len(types)} arguments, "
            f"got {len(descriptor.arguments)}"
        )
    args = [_normalize_argument(t, v) for t, v in zip(types, descriptor.arguments)]
    selector = function_signature_to_4byte_selector(descriptor.function_signature)
    return selector + encode(types, args)


def encode_aggregate3(descriptors: Sequence[ReadDescriptor]) -> bytes:
    """Encode a Multicall3 ``aggregate3`` call with ``allowFailure`` on every read."""
    calls = [
        (d.contract_address.lower(), True, encode_call(d)) for d in descriptors
    ]
    selector = function_signature_to_4byte_selector(_AGGREGATE3_SIGNATURE)
    return selector + encode([_AGGREGATE3_CALL_TYPE], [calls])


def decode_aggregate3(return_data: bytes, expected: int) -> list[ReadResult]:
    """Decode ``aggregate3`` return data into positional read results.

    Raises:
        ValueError: the payload does not decode or has the wrong length.
    """
    try:
        (entries,) = decode([_AGGREGATE3_RETURN_TYPE], return_data)
    except DecodingError as e:
        raise ValueError(f"Undecodable aggregate3 response: {e}") from e

    if len(entries) != expected:
        raise ValueError(
            f"aggregate3 returned {len(entries)} results for {expected} calls"
        )

    results: list[ReadResult] = []
    for index, (success, data) in enumerate(entries):
        if success:
            results.append(ReadResult(index, ReadStatus.OK, bytes(data)))
        else:
            results.append(ReadResult(index, ReadStatus.FAILED, None))
    return results


def decode_output(descriptor: ReadDescriptor, data: bytes) -> Any:
    """Decode raw return data and pick the descriptor's output element.

    Raises:
        ValueError: empty or malformed return data.
    """
    if not data:
        raise ValueError("empty return data")
    try:
        values = decode(list(descriptor.output_types), data)
    except DecodingError as e:
        raise ValueError(str(e)) from e
    try:
        return values[descriptor.output_index]
    except IndexError:
        raise ValueError(
            f"output index {descriptor.output_index} out of range "
            f"for {len(values)} values"
        ) from None
