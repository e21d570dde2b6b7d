"""WalletLedgerFake: Scenario-based test double for the WalletLedger protocol.

Scenarios:
- accept: every credit is confirmed
- decline: every credit is declined (non-retryable)
- unavailable: the ledger cannot be reached (retryable)

Credits are de-duplicated by idempotency key, like a real ledger.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from app.wallet.ledger import CreditInstruction, CreditReceipt, WalletCreditError


class WalletLedgerFake:
    """In-memory ledger used in tests and local development."""

    VALID_SCENARIOS = {"accept", "decline", "unavailable"}

    def __init__(self, scenario: str = "accept"):
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}")
        self.scenario = scenario
        self.receipts: dict[str, CreditReceipt] = {}
        self.balances: dict[str, Decimal] = {}
        self.attempts: list[CreditInstruction] = []

    async def credit(self, instruction: CreditInstruction) -> CreditReceipt:
        self.attempts.append(instruction)

        existing = self.receipts.get(instruction.idempotency_key)
        if existing is not None:
            return existing

        if self.scenario == "unavailable":
            raise WalletCreditError("Wallet ledger unreachable", retryable=True)
        if self.scenario == "decline":
            raise WalletCreditError("Credit declined by wallet ledger", retryable=False)

        receipt = CreditReceipt(
            transaction_id=f"txn_{uuid.uuid4().hex[:12]}",
            idempotency_key=instruction.idempotency_key,
            amount=instruction.amount,
            credited_at=datetime.now(UTC),
        )
        self.receipts[instruction.idempotency_key] = receipt
        self.balances[instruction.recipient_id] = (
            self.balances.get(instruction.recipient_id, Decimal("0")) + instruction.amount
        )
        return receipt

    def balance_of(self, user_id: str) -> Decimal:
        return self.balances.get(user_id, Decimal("0"))
