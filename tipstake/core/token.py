"""
Token - External fungible-token ledger boundary.

The staking engine does not move value itself. It asks a token ledger with
ERC-20 semantics to:
- pull principal from a staker (transfer_from, requires prior approve)
- push principal and rewards back out (transfer from the pool's address)
- report the pool's own balance (emergency withdraw)

Each call either completes fully or raises a TokenError and changes nothing.
FungibleToken is the interface; InMemoryToken is the local implementation
used by the CLI, the demo and the test suite.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager, nullcontext
from typing import Dict, Iterator, Optional, Tuple, TYPE_CHECKING

from tipstake.core.errors import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidReceiverError,
)
from tipstake.core.reward_math import MAX_UINT256, checked_add
from tipstake.crypto import ZERO_ADDRESS, address_from_label, bytes_to_hex
from tipstake.utils.logger import get_logger
from tipstake.utils.validation import require, validate_address, validate_amount

if TYPE_CHECKING:
    from tipstake.core.storage import StorageManager

logger = get_logger("token")


class FungibleToken(ABC):
    """Interface the staking engine needs from a token ledger."""

    address: bytes
    symbol: str
    decimals: int

    @abstractmethod
    def balance_of(self, account: bytes) -> int:
        ...

    @abstractmethod
    def allowance(self, owner: bytes, spender: bytes) -> int:
        ...

    @abstractmethod
    def approve(self, owner: bytes, spender: bytes, amount: int) -> None:
        ...

    @abstractmethod
    def transfer(self, sender: bytes, recipient: bytes, amount: int) -> None:
        ...

    @abstractmethod
    def transfer_from(
        self, spender: bytes, owner: bytes, recipient: bytes, amount: int
    ) -> None:
        ...

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Scope in which calls are undone if the block raises.

        A remote ledger settles each call on its own and cannot take part,
        so the base implementation is a plain block.
        """
        yield


class InMemoryToken(FungibleToken):
    """
    ERC-20 style token kept in dictionaries.

    Attributes:
        balances: Mapping of account address to balance
        allowances: Mapping of (owner, spender) to remaining allowance
        total_supply: Sum of all balances
    """

    def __init__(
        self,
        symbol: str = "TIP",
        decimals: int = 18,
        address: Optional[bytes] = None,
        storage_manager: Optional["StorageManager"] = None,
    ):
        """
        Initialize the token.

        Args:
            symbol: Ticker symbol
            decimals: Display decimals
            address: Token identifier. None = derived from the symbol.
            storage_manager: Persistence manager. None = in-memory only.
        """
        self.symbol = symbol
        self.decimals = decimals
        self.address = address or address_from_label(f"token:{symbol}")

        self.balances: Dict[bytes, int] = {}
        self.allowances: Dict[Tuple[bytes, bytes], int] = {}
        self.total_supply = 0

        self.storage_manager = storage_manager
        if storage_manager:
            self._load_from_storage()

    # =========================================================================
    # Views
    # =========================================================================

    def balance_of(self, account: bytes) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: bytes, spender: bytes) -> int:
        return self.allowances.get((owner, spender), 0)

    # =========================================================================
    # Mutations
    # =========================================================================

    def mint(self, recipient: bytes, amount: int) -> None:
        """Create new tokens (faucet / reward pool funding)."""
        require(validate_address(recipient, "recipient"))
        require(validate_amount(amount))
        if recipient == ZERO_ADDRESS:
            raise InvalidReceiverError(recipient)

        new_supply = checked_add(self.total_supply, amount)
        new_balance = checked_add(self.balance_of(recipient), amount)

        self.total_supply = new_supply
        self.balances[recipient] = new_balance
        self._persist_balances(recipient)
        logger.debug(f"Minted {amount} {self.symbol} to {bytes_to_hex(recipient)[:10]}...")

    def approve(self, owner: bytes, spender: bytes, amount: int) -> None:
        require(validate_address(owner, "owner"))
        require(validate_address(spender, "spender"))
        require(validate_amount(amount))

        self.allowances[(owner, spender)] = amount
        if self.storage_manager:
            self.storage_manager.save_allowance(self.address, owner, spender, amount)

    def transfer(self, sender: bytes, recipient: bytes, amount: int) -> None:
        """
        Move `amount` from sender to recipient.

        Raises:
            InvalidReceiverError: recipient is the zero address
            InsufficientBalanceError: sender cannot cover amount
        """
        require(validate_address(sender, "sender"))
        require(validate_address(recipient, "recipient"))
        require(validate_amount(amount))
        if recipient == ZERO_ADDRESS:
            raise InvalidReceiverError(recipient)

        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalanceError(sender, balance, amount)

        self.balances[sender] = balance - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        self._persist_balances(sender, recipient)

    def transfer_from(
        self, spender: bytes, owner: bytes, recipient: bytes, amount: int
    ) -> None:
        """
        Move `amount` from owner to recipient using spender's allowance.

        An allowance of MAX_UINT256 is treated as unlimited and not spent.

        Raises:
            InsufficientAllowanceError: allowance below amount
            InsufficientBalanceError: owner cannot cover amount
        """
        require(validate_address(spender, "spender"))
        require(validate_address(owner, "owner"))
        require(validate_amount(amount))

        current = self.allowance(owner, spender)
        if current < amount:
            raise InsufficientAllowanceError(spender, current, amount)

        # Balance checks happen inside transfer; spend allowance only after it succeeds
        self.transfer(owner, recipient, amount)

        if current != MAX_UINT256:
            self.allowances[(owner, spender)] = current - amount
            if self.storage_manager:
                self.storage_manager.save_allowance(self.address, owner, spender, current - amount)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Undo every balance and allowance change made inside the block if it
        raises. Storage writes join the storage manager's transaction, so the
        staking pool can commit its own rows alongside them.
        """
        balances = dict(self.balances)
        allowances = dict(self.allowances)
        total_supply = self.total_supply
        scope = self.storage_manager.transaction() if self.storage_manager else nullcontext()
        try:
            with scope:
                yield
        except Exception:
            self.balances = balances
            self.allowances = allowances
            self.total_supply = total_supply
            raise

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_from_storage(self) -> None:
        balances, allowances = self.storage_manager.load_token_state(self.address)
        for account, balance in balances:
            self.balances[account] = balance
        for owner, spender, amount in allowances:
            self.allowances[(owner, spender)] = amount
        self.total_supply = sum(self.balances.values())

        logger.info(
            f"Loaded token {self.symbol}: {len(self.balances)} holders, supply={self.total_supply}"
        )

    def _persist_balances(self, *accounts: bytes) -> None:
        if not self.storage_manager:
            return
        for account in accounts:
            self.storage_manager.save_balance(self.address, account, self.balances[account])

    def __repr__(self) -> str:
        return f"InMemoryToken(symbol={self.symbol}, holders={len(self.balances)}, supply={self.total_supply})"
