"""
Error taxonomy for the autoclaw trading core
"""
from typing import Optional


class AutoclawError(Exception):
    """Base class for all trading-core errors"""


class UnknownTokenError(AutoclawError):
    """Token symbol or address is not in the registry"""


class NoRouteFound(AutoclawError):
    """No direct or single-hub route exists between two tokens"""

    def __init__(self, token_in: str, token_out: str):
        self.token_in = token_in
        self.token_out = token_out
        super().__init__(f"No exchange route found for {token_in} -> {token_out}")


class QuoteUnavailable(AutoclawError):
    """Router or pool registry could not be read (RPC / infrastructure failure)"""


class GuardrailBlocked(AutoclawError):
    """A guardrail rule rejected the proposed action"""

    def __init__(self, rule_name: str, reason: str):
        self.rule_name = rule_name
        self.reason = reason
        super().__init__(f"[{rule_name}] {reason}")


class InsufficientBalance(AutoclawError):
    """Wallet does not hold enough of a token to execute a hop"""

    def __init__(self, token: str, required: int, available: int):
        self.token = token
        self.required = required
        self.available = available
        super().__init__(f"Insufficient {token} balance: need {required}, have {available}")


class PartialTokenCheckFailure(AutoclawError):
    """A single wallet/token balance check failed during a funding poll"""

    def __init__(self, wallet: str, token_symbol: str, cause: Optional[BaseException] = None):
        self.wallet = wallet
        self.token_symbol = token_symbol
        self.cause = cause
        super().__init__(f"Failed to check {token_symbol} balance for {wallet}: {cause}")


class SignerMismatch(AutoclawError):
    """The signing key does not control the wallet a swap was requested for"""

    def __init__(self, wallet_address: str, signer_address: str):
        self.wallet_address = wallet_address
        self.signer_address = signer_address
        super().__init__(f"Signer {signer_address} cannot trade for wallet {wallet_address}")


class PersistenceConflict(AutoclawError):
    """A write to the persistence layer failed or conflicted"""


class ExternalServiceError(AutoclawError):
    """A downstream service (conversion, registration, ...) failed"""


# Chain errors

class ChainError(AutoclawError):
    """Base class for chain RPC errors"""


class ContractReverted(ChainError):
    """The call or transaction was reverted by the contract"""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class ChainTimeout(ChainError):
    """The RPC endpoint did not answer in time"""


class ChainRPCError(ChainError):
    """Network or node level failure"""
