"""
In-process ledger.

The Chain hosts every deployed contract and provides the execution
primitives they rely on:

- Caller identity: a call stack whose top is ``msg_sender``
- Atomicity: savepoints that snapshot all contract storage and the event
  log, restored on any exception
- Gas: a stack of meters; nested caps charge their usage to the parent
- Events: an append-only log, truncated on rollback

Execution is strictly sequential. Only one transaction may be in flight.
"""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional

from airdropmarket.protocol.errors import MarketError
from airdropmarket.protocol.models import Event, normalize_address

from .gas import GasMeter
from .settings import MarketSettings, get_settings

if TYPE_CHECKING:
    from .contract import Contract

logger = logging.getLogger("airdropmarket.chain")


class NoActiveCallError(RuntimeError):
    """Raised when caller identity is requested outside any call."""


class TransactionInProgressError(RuntimeError):
    """Raised when a transaction is started inside another one."""


# ===========================================================================
# Receipts
# ===========================================================================


@dataclass
class TransactionReceipt:
    """
    Outcome of one top-level transaction.

    Attributes:
        tx_index: Sequence number of the transaction
        sender: External caller
        status: True if committed, False if rolled back
        gas_used: Gas consumed (also charged on rollback)
        events: Events committed by the transaction
        error: Rejection that rolled the transaction back, if any
    """
    tx_index: int
    sender: str
    status: bool
    gas_used: int
    events: List[Event] = field(default_factory=list)
    error: Optional[MarketError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txIndex": self.tx_index,
            "sender": self.sender,
            "status": self.status,
            "gasUsed": self.gas_used,
            "events": [e.to_dict() for e in self.events],
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class _Savepoint:
    storage: Dict[str, Dict[str, Any]]
    event_count: int


# ===========================================================================
# Chain
# ===========================================================================


class Chain:
    """
    Single shared state for a set of contracts.

    Contracts register on construction and receive a deterministic
    address. External callers enter through ``transact``; contracts call
    each other through ``call_as`` so the callee sees the calling
    contract as ``msg_sender``.
    """

    def __init__(self, settings: Optional[MarketSettings] = None):
        self._settings = settings or get_settings()
        self._contracts: Dict[str, "Contract"] = {}
        self._events: List[Event] = []
        self._receipts: List[TransactionReceipt] = []
        self._call_stack: List[str] = []
        self._gas_stack: List[GasMeter] = []
        self._nonce = 0

        genesis = self._settings.chain.genesis_timestamp
        self._timestamp = genesis if genesis is not None else int(time.time())

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> MarketSettings:
        return self._settings

    @property
    def chain_id(self) -> int:
        return self._settings.chain.chain_id

    @property
    def timestamp(self) -> int:
        return self._timestamp

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    @property
    def receipts(self) -> List[TransactionReceipt]:
        return list(self._receipts)

    @property
    def in_transaction(self) -> bool:
        return bool(self._call_stack)

    @property
    def msg_sender(self) -> str:
        """Immediate caller of the currently executing code."""
        if not self._call_stack:
            raise NoActiveCallError("No call in progress")
        return self._call_stack[-1]

    @property
    def gas_remaining(self) -> Optional[int]:
        return self._gas_stack[-1].remaining if self._gas_stack else None

    def advance_time(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Time only moves forward")
        self._timestamp += seconds
        return self._timestamp

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def register(self, contract: "Contract", label: str) -> str:
        """Register a contract and return its address."""
        self._nonce += 1
        digest = hashlib.sha256(f"{label}:{self._nonce}".encode("utf-8")).hexdigest()
        address = "0x" + digest[-40:]
        self._contracts[address] = contract
        logger.debug("Deployed %s at %s", label, address)
        return address

    def get_contract(self, address: str) -> Optional["Contract"]:
        return self._contracts.get(normalize_address(address))

    # ------------------------------------------------------------------
    # Events and gas
    # ------------------------------------------------------------------

    def emit(self, name: str, emitter: str, args: Dict[str, Any]) -> Event:
        event = Event(name=name, emitter=emitter, args=dict(args), tx_index=len(self._receipts))
        self._events.append(event)
        return event

    def get_events(self, name: Optional[str] = None, emitter: Optional[str] = None) -> List[Event]:
        return [
            e for e in self._events
            if (name is None or e.name == name)
            and (emitter is None or e.emitter == emitter)
        ]

    def charge(self, amount: int) -> None:
        """Charge the innermost gas meter. No-op outside a transaction."""
        if self._gas_stack:
            self._gas_stack[-1].charge(amount)

    @contextmanager
    def gas_cap(self, limit: int) -> Iterator[GasMeter]:
        """
        Run a block under its own gas allowance.

        The allowance is bounded by what the enclosing meter has left.
        Whatever the block used is charged to the enclosing meter on exit.
        """
        parent = self._gas_stack[-1] if self._gas_stack else None
        allowance = min(limit, parent.remaining) if parent else limit
        meter = GasMeter(allowance)
        self._gas_stack.append(meter)
        try:
            yield meter
        finally:
            self._gas_stack.pop()
            if parent is not None:
                parent.charge(meter.used)

    # ------------------------------------------------------------------
    # Atomicity
    # ------------------------------------------------------------------

    def _snapshot(self) -> _Savepoint:
        return _Savepoint(
            storage={addr: c.snapshot() for addr, c in self._contracts.items()},
            event_count=len(self._events),
        )

    def _restore(self, savepoint: _Savepoint) -> None:
        for addr, contract in self._contracts.items():
            if addr in savepoint.storage:
                contract.restore(savepoint.storage[addr])
        del self._events[savepoint.event_count:]

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """
        Roll back all contract storage and events if the block raises.

        Savepoints nest; an inner rollback leaves outer work intact.
        """
        snapshot = self._snapshot()
        try:
            yield
        except BaseException:
            self._restore(snapshot)
            raise

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def call_as(self, sender: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Invoke ``fn`` with ``sender`` as the immediate caller."""
        self._call_stack.append(normalize_address(sender))
        try:
            return fn(*args, **kwargs)
        finally:
            self._call_stack.pop()

    def transact(
        self,
        sender: str,
        fn: Callable[..., Any],
        *args: Any,
        gas_limit: Optional[int] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Run one external transaction.

        Either every effect of ``fn`` commits or none does. A receipt is
        recorded in both cases; market errors are re-raised unchanged.

        Raises:
            TransactionInProgressError: If called from inside a transaction
        """
        if self._call_stack:
            raise TransactionInProgressError("A transaction is already in progress")

        sender = normalize_address(sender)
        tx_index = len(self._receipts)
        meter = GasMeter(gas_limit if gas_limit is not None else self._settings.gas.transaction_limit)
        event_start = len(self._events)

        self._gas_stack.append(meter)
        try:
            with self.savepoint():
                meter.charge(self._settings.gas.transaction_base)
                result = self.call_as(sender, fn, *args, **kwargs)
        except MarketError as exc:
            logger.info(
                "Transaction %d from %s reverted (code=%s): %s",
                tx_index, sender, exc.code.value, exc,
            )
            self._receipts.append(TransactionReceipt(
                tx_index=tx_index,
                sender=sender,
                status=False,
                gas_used=meter.used,
                error=exc,
            ))
            raise
        finally:
            self._gas_stack.pop()

        self._receipts.append(TransactionReceipt(
            tx_index=tx_index,
            sender=sender,
            status=True,
            gas_used=meter.used,
            events=self._events[event_start:],
        ))
        logger.debug("Transaction %d from %s committed (gas=%d)", tx_index, sender, meter.used)
        return result
