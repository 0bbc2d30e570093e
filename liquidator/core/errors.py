# /liquidator/core/errors.py
# Every named failure of the liquidation pipeline is its own exception class.
# Callers catch by family (configuration / authorization / economic) or by kind.


class LiquidatorError(Exception):
    """Base class for every failure raised by the liquidation core."""


class Revert(LiquidatorError):
    """Generic revert raised by collaborator contracts (tokens, pools, routers)."""

    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason


# --- Configuration errors ---

class ConfigurationError(LiquidatorError):
    pass


class NoPoolFound(ConfigurationError):
    def __init__(self, collateral: str, debt: str, fee_tier: int):
        super().__init__(f"no flash pool for {collateral}/{debt} or wrapped-native/{debt} at fee tier {fee_tier}")
        self.collateral = collateral
        self.debt = debt
        self.fee_tier = fee_tier


class UnknownAdapter(ConfigurationError):
    def __init__(self, tag: int):
        super().__init__(f"no adapter registered for tag {tag}")
        self.tag = tag


class InvalidFeeTier(ConfigurationError):
    def __init__(self, tier: int):
        super().__init__(f"invalid flash fee tier {tier}")
        self.tier = tier


class InvalidRoutingData(ConfigurationError):
    pass


# --- Authorization errors ---

class AuthorizationError(LiquidatorError):
    pass


class NotOwner(AuthorizationError):
    def __init__(self, caller: str):
        super().__init__(f"caller {caller} is not the owner")
        self.caller = caller


class InvalidCallback(AuthorizationError):
    def __init__(self, caller: str):
        super().__init__(f"unexpected flash callback from {caller}")
        self.caller = caller


class InvalidInitiator(AuthorizationError):
    def __init__(self, initiator: str):
        super().__init__(f"flash loan initiated by {initiator}, not by this contract")
        self.initiator = initiator


class ReentrancyError(AuthorizationError):
    def __init__(self):
        super().__init__("reentrant call")


# --- Economic errors ---

class EconomicError(LiquidatorError):
    pass


class SlippageExceeded(EconomicError):
    def __init__(self, amount_out: int, min_amount_out: int):
        super().__init__(f"swap returned {amount_out}, below minimum {min_amount_out}")
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out


class InsufficientOutput(EconomicError):
    def __init__(self, amount_out: int, min_amount_out: int):
        super().__init__(f"adapter output {amount_out} below minimum {min_amount_out}")
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out


class InsufficientRepayment(EconomicError):
    def __init__(self, balance: int, owed: int):
        super().__init__(f"balance {balance} cannot cover flash repayment of {owed}")
        self.balance = balance
        self.owed = owed


# --- Swap / asset errors ---

class SwapError(LiquidatorError):
    pass


class TokenMismatch(SwapError):
    def __init__(self, token_in: str, token_out: str):
        super().__init__(f"direct adapter needs token_in == token_out, got {token_in} -> {token_out}")


class AssetMismatch(SwapError):
    def __init__(self, asset: str, expected: str):
        super().__init__(f"flash loan asset {asset} does not match expected debt asset {expected}")


class RouteUnavailable(SwapError):
    """No route provider could produce a swap route for the request."""
