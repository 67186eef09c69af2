"""
Call Batching

Lets one external transaction run several of a host contract's own entry
points in order, as the original caller, against the one shared state.

Each element is a ``Call`` command (method name plus arguments). Commands
are dispatched by an interpreter straight onto the host's bound methods,
so the host sees the same ``msg_sender`` it would see for a direct call.
Atomicity comes from the chain's savepoints.

Variants:
- multicall: all-or-nothing, inner errors re-raised unchanged
- try_multicall: best effort, each element individually atomic
- multicall_with_gas_limit: all-or-nothing, each element gas-capped
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Tuple, Union

from airdropmarket.protocol.errors import (
    ArrayLengthMismatchError,
    CallFailedError,
    InvalidCallError,
    MarketError,
    OutOfGasError,
)
from airdropmarket.utils.json import json_dumps, json_loads

logger = logging.getLogger("airdropmarket.batch")


# ===========================================================================
# Call command
# ===========================================================================


@dataclass(frozen=True)
class Call:
    """
    One batched command.

    Attributes:
        method: Name of a batchable entry point on the host
        args: Positional arguments
        kwargs: Keyword arguments
    """
    method: str
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"method": self.method, "args": list(self.args), "kwargs": dict(self.kwargs)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Call":
        if not isinstance(data, dict) or not isinstance(data.get("method"), str):
            raise InvalidCallError("Call payload must name a method")
        return cls(
            method=data["method"],
            args=tuple(data.get("args") or ()),
            kwargs=dict(data.get("kwargs") or {}),
        )

    def encode(self) -> bytes:
        """Compact JSON payload for this call."""
        return json_dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def decode(cls, payload: bytes) -> "Call":
        try:
            data = json_loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidCallError(f"Undecodable call payload: {exc}") from exc
        return cls.from_dict(data)


CallLike = Union[Call, bytes, Dict[str, Any]]


def encode_call(method: str, *args: Any, **kwargs: Any) -> bytes:
    """Encode a call payload for ``multicall``."""
    return Call(method, tuple(args), dict(kwargs)).encode()


def _as_call(payload: CallLike) -> Call:
    if isinstance(payload, Call):
        return payload
    if isinstance(payload, (bytes, bytearray)):
        return Call.decode(bytes(payload))
    if isinstance(payload, dict):
        return Call.from_dict(payload)
    raise InvalidCallError(f"Unsupported call payload type: {type(payload).__name__}")


# ===========================================================================
# Call batcher
# ===========================================================================


class CallBatcher:
    """
    Mixin adding batched self-calls to a Contract.

    The host lists the entry points that may appear in a batch in
    ``__batchable__``. Batch entry points themselves are never batchable.
    """

    __batchable__: Tuple[str, ...] = ()

    _BATCH_ENTRY_POINTS = ("multicall", "try_multicall", "multicall_with_gas_limit")

    def _resolve(self, call: Call) -> Callable[..., Any]:
        if call.method in self._BATCH_ENTRY_POINTS or call.method not in self.__batchable__:
            raise InvalidCallError(f"Method '{call.method}' cannot be batched")

        method = getattr(self, call.method)
        try:
            inspect.signature(method).bind(*call.args, **call.kwargs)
        except TypeError as exc:
            raise InvalidCallError(f"Bad arguments for '{call.method}': {exc}") from exc
        return method

    def _dispatch(self, call: Call) -> Any:
        method = self._resolve(call)
        self._chain.charge(self._chain.settings.gas.dispatch)
        return method(*call.args, **call.kwargs)

    def _run_element(self, index: int, call: Call) -> Any:
        """Run one element; reason-less failures become CallFailedError."""
        try:
            return self._dispatch(call)
        except MarketError as exc:
            logger.debug("Batched call %d (%s) reverted: %s", index, call.method, exc)
            if exc.reason is None:
                raise CallFailedError(index, call.method) from exc
            raise

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def multicall(self, calls: Sequence[CallLike]) -> List[Any]:
        """
        Run every call in order, all or nothing.

        Returns each call's result. The first failing call rolls back the
        whole batch and its error is re-raised unchanged.
        """
        commands = [_as_call(c) for c in calls]
        results: List[Any] = []
        with self._chain.savepoint():
            for index, command in enumerate(commands):
                results.append(self._run_element(index, command))
        return results

    def try_multicall(self, calls: Sequence[CallLike]) -> Tuple[List[bool], List[Any]]:
        """
        Run every call in order, keeping the successful ones.

        Each call is atomic on its own. A failed call contributes False and
        its error object; later calls still run. Running out of the
        transaction's own gas is never swallowed.
        """
        success: List[bool] = []
        results: List[Any] = []
        for index, payload in enumerate(calls):
            try:
                with self._chain.savepoint():
                    results.append(self._dispatch(_as_call(payload)))
                success.append(True)
            except OutOfGasError:
                raise
            except MarketError as exc:
                logger.debug("Best-effort call %d failed: %s", index, exc)
                success.append(False)
                results.append(exc)
        return success, results

    def multicall_with_gas_limit(
        self,
        calls: Sequence[CallLike],
        gas_limits: Sequence[int],
    ) -> List[Any]:
        """
        Like multicall, but call ``i`` may use at most ``gas_limits[i]`` gas.

        Raises:
            ArrayLengthMismatchError: If the two sequences differ in length
        """
        if len(calls) != len(gas_limits):
            raise ArrayLengthMismatchError(
                f"calls ({len(calls)}) and gas_limits ({len(gas_limits)}) differ in length"
            )

        commands = [_as_call(c) for c in calls]
        results: List[Any] = []
        with self._chain.savepoint():
            for index, (command, limit) in enumerate(zip(commands, gas_limits)):
                with self._chain.gas_cap(int(limit)):
                    results.append(self._run_element(index, command))
        return results
