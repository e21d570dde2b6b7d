"""WalletLedger Protocol: the boundary between billing and balance-keeping.

The billing engine never touches balances. When an invoice is settled it asks
the ledger to credit the freelancer; the ledger owns balance consistency and
its own retry policy. Implementations MUST treat `idempotency_key` as the
de-duplication key: crediting the same key twice returns the first receipt.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable


class WalletCreditError(Exception):
    """Raised when the ledger is unreachable or declines a credit.

    Recoverable: the invoice stays `sent` and the ledger retries on its own.
    """

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


@dataclass(frozen=True)
class CreditInstruction:
    """A single credit the billing engine asks the ledger to perform."""

    idempotency_key: str  # invoice id
    recipient_id: str  # freelancer
    payer_id: str  # commissioner
    amount: Decimal
    invoice_number: str
    project_id: str


@dataclass(frozen=True)
class CreditReceipt:
    """Ledger confirmation of a completed credit."""

    transaction_id: str
    idempotency_key: str
    amount: Decimal
    credited_at: datetime


@runtime_checkable
class WalletLedger(Protocol):
    """Protocol for the external wallet ledger."""

    async def credit(self, instruction: CreditInstruction) -> CreditReceipt:
        """Credit the recipient's wallet.

        Args:
            instruction: What to credit, keyed by invoice id

        Returns:
            Receipt for the confirmed credit

        Raises:
            WalletCreditError: The credit was not confirmed. Implementations
                wrap transport and lookup failures in it, with `retryable`
                False for a definitive decline
        """
        ...
