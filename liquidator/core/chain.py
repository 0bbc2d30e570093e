# /liquidator/core/chain.py
# In-process host runtime for the liquidation core.
# - Contracts keep all persistent state in Chain.storage so a top-level transaction
#   can be snapshotted and restored in one piece.
# - Every contract-to-contract call goes through Chain.call, which maintains the
#   msg_sender / msg_value frame stack callbacks authenticate against.

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import keccak, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field

from liquidator.core.errors import Revert
from liquidator.core.logger import get_logger, TRANSACTIONS_REVERTED

log = get_logger(__name__)

MAX_UINT256 = 2**256 - 1
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
# Sentinel for the chain's native currency in rescue calls.
NATIVE_ASSET = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


class Log(BaseModel):
    """A single event emitted by a contract."""
    model_config = ConfigDict(frozen=True)

    address: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Chain:
    """
    A single-threaded ledger with EVM-like call semantics: native balances,
    contract storage, event logs and a caller stack. `transact` is the only
    commit point; any exception raised below it restores the pre-call state.
    """
    def __init__(self, chain_id: int = 1):
        self.chain_id = chain_id
        self.contracts: Dict[str, "Contract"] = {}
        self.storage: Dict[str, Dict[str, Any]] = {}
        self.native: Dict[str, int] = {}
        self.logs: List[Log] = []
        self._frames: List[Tuple[str, int]] = []
        self._address_counter = 0
        self._lock = threading.RLock()

    # --- addresses & registration ---

    def new_address(self, label: str = "account") -> str:
        self._address_counter += 1
        digest = keccak(text=f"{label}:{self.chain_id}:{self._address_counter}")
        return to_checksum_address("0x" + digest[-20:].hex())

    def register(self, contract: "Contract", label: str) -> str:
        address = self.new_address(label)
        self.contracts[address] = contract
        self.storage[address] = {}
        return address

    def contract_at(self, address: str) -> "Contract":
        contract = self.contracts.get(address)
        if contract is None:
            raise Revert(f"call to non-contract {address}")
        return contract

    # --- call frames ---

    @property
    def msg_sender(self) -> str:
        if not self._frames:
            raise RuntimeError("msg_sender read outside of a call")
        return self._frames[-1][0]

    @property
    def msg_value(self) -> int:
        return self._frames[-1][1] if self._frames else 0

    @property
    def depth(self) -> int:
        return len(self._frames)

    def call(self, sender: str, target: str, fn: str, *args, value: int = 0, **kwargs):
        """Invoke `fn` on the contract at `target` with `sender` as msg_sender."""
        contract = self.contract_at(target)
        method = getattr(contract, fn, None)
        if fn.startswith("_") or not callable(method):
            raise Revert(f"{type(contract).__name__} at {target} has no function {fn}")
        if value:
            self.transfer_native(sender, target, value)
        self._frames.append((sender, value))
        try:
            return method(*args, **kwargs)
        finally:
            self._frames.pop()

    def transact(self, sender: str, target: str, fn: str, *args, value: int = 0, **kwargs):
        """
        Top-level entry: runs `fn` as a transaction from an external account.
        All storage, native balances and logs are rolled back if anything raises.
        """
        with self._lock:
            snapshot = self._snapshot()
            try:
                return self.call(sender, target, fn, *args, value=value, **kwargs)
            except Exception as e:
                self._restore(snapshot)
                TRANSACTIONS_REVERTED.labels(type(e).__name__).inc()
                log.warning("TRANSACTION_REVERTED", sender=sender, target=target, fn=fn, error=type(e).__name__, reason=str(e))
                raise

    def _snapshot(self) -> tuple:
        return copy.deepcopy(self.storage), dict(self.native), list(self.logs)

    def _restore(self, snapshot: tuple):
        self.storage, self.native, self.logs = snapshot

    # --- native currency ---

    def native_balance(self, address: str) -> int:
        return self.native.get(address, 0)

    def fund_native(self, address: str, amount: int):
        """Credits native currency out of thin air (genesis allocation / test setup)."""
        self.native[address] = self.native_balance(address) + amount

    def transfer_native(self, sender: str, to: str, amount: int):
        balance = self.native_balance(sender)
        if balance < amount:
            raise Revert(f"native balance {balance} of {sender} below {amount}")
        self.native[sender] = balance - amount
        self.native[to] = self.native_balance(to) + amount

    # --- events ---

    def emit(self, address: str, name: str, **args):
        self.logs.append(Log(address=address, name=name, args=args))

    def events(self, name: Optional[str] = None, address: Optional[str] = None) -> List[Log]:
        return [
            entry for entry in self.logs
            if (name is None or entry.name == name) and (address is None or entry.address == address)
        ]


class Contract:
    """Base class for anything deployed on a Chain."""
    label = "contract"

    def __init__(self, chain: Chain):
        self.chain = chain
        self.address = chain.register(self, self.label)

    @property
    def storage(self) -> Dict[str, Any]:
        # Looked up on every access: a rollback swaps the whole storage map.
        return self.chain.storage[self.address]

    @property
    def msg_sender(self) -> str:
        return self.chain.msg_sender

    @property
    def msg_value(self) -> int:
        return self.chain.msg_value

    @property
    def native_balance(self) -> int:
        return self.chain.native_balance(self.address)

    def _call(self, target: str, fn: str, *args, value: int = 0, **kwargs):
        return self.chain.call(self.address, target, fn, *args, value=value, **kwargs)

    def _send_native(self, to: str, amount: int):
        self.chain.transfer_native(self.address, to, amount)

    def _emit(self, name: str, **args):
        self.chain.emit(self.address, name, **args)
