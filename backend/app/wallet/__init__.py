from app.wallet.fake import WalletLedgerFake
from app.wallet.ledger import CreditInstruction, CreditReceipt, WalletCreditError, WalletLedger

__all__ = [
    "CreditInstruction",
    "CreditReceipt",
    "WalletCreditError",
    "WalletLedger",
    "WalletLedgerFake",
]
