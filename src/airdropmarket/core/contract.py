from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Tuple

from .chain import Chain


class Contract:
    """
    Base class for ledger-hosted contracts.

    Subclasses list the attributes that make up their storage in
    ``__storage__``; those are snapshotted and restored by the chain's
    savepoints. Everything else on the instance is treated as immutable
    wiring (collaborator references, labels).
    """

    __storage__: Tuple[str, ...] = ()

    def __init__(self, chain: Chain, label: str):
        self._chain = chain
        self.label = label
        self.address = chain.register(self, label)

    @property
    def chain(self) -> Chain:
        return self._chain

    @property
    def msg_sender(self) -> str:
        return self._chain.msg_sender

    # ------------------------------------------------------------------
    # Savepoint support
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self.__storage__}

    def restore(self, snapshot: Dict[str, Any]) -> None:
        for name, value in snapshot.items():
            setattr(self, name, value)

    # ------------------------------------------------------------------
    # Metered primitives
    # ------------------------------------------------------------------

    def _sload(self, slots: int = 1) -> None:
        self._chain.charge(self._chain.settings.gas.storage_read * slots)

    def _sstore(self, slots: int = 1) -> None:
        self._chain.charge(self._chain.settings.gas.storage_write * slots)

    def _emit(self, name: str, **args: Any) -> None:
        self._chain.charge(self._chain.settings.gas.log)
        self._chain.emit(name, self.address, args)

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Call another contract with this contract as ``msg_sender``."""
        self._chain.charge(self._chain.settings.gas.external_call)
        return self._chain.call_as(self.address, fn, *args, **kwargs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"
