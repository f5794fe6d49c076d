"""Pydantic models for Helius Enhanced Transaction API and RPC responses."""

from decimal import Decimal

from pydantic import BaseModel


class HeliusTokenTransfer(BaseModel):
    """Token transfer within a transaction."""

    from_user_account: str = ""
    to_user_account: str = ""
    from_token_account: str = ""
    to_token_account: str = ""
    token_amount: Decimal = Decimal("0")
    mint: str = ""
    token_standard: str = ""


class HeliusNativeTransfer(BaseModel):
    """SOL native transfer within a transaction."""

    from_user_account: str = ""
    to_user_account: str = ""
    amount: int = 0  # lamports


class HeliusTokenBalanceChange(BaseModel):
    """Per-account token balance delta (accountData[].tokenBalanceChanges)."""

    user_account: str = ""
    mint: str = ""


class HeliusTransaction(BaseModel):
    """Enhanced parsed transaction from Helius."""

    signature: str
    type: str = ""  # "CREATE", "TOKEN_MINT", "TRANSFER", "SWAP", ...
    source: str = ""  # "PUMP_FUN", "RAYDIUM", "SYSTEM_PROGRAM", ...
    fee: int = 0  # lamports
    fee_payer: str = ""
    slot: int = 0
    timestamp: int = 0  # unix
    description: str = ""
    token_transfers: list[HeliusTokenTransfer] = []
    native_transfers: list[HeliusNativeTransfer] = []
    account_keys: list[str] = []
    program_ids: list[str] = []
    token_balance_changes: list[HeliusTokenBalanceChange] = []
    transaction_error: str | dict | None = None  # non-None means failed

    def touches_program(self, program_ids: set[str] | frozenset[str]) -> bool:
        """True if any instruction or account key belongs to one of program_ids."""
        return any(p in program_ids for p in self.program_ids) or any(
            k in program_ids for k in self.account_keys
        )


class HeliusSignature(BaseModel):
    """Transaction signature metadata."""

    signature: str
    slot: int = 0
    timestamp: int = 0
    err: dict | str | None = None  # non-None means failed


class HeliusMintInfo(BaseModel):
    """Parsed SPL mint account (getAccountInfo jsonParsed)."""

    mint: str
    mint_authority: str | None = None
    freeze_authority: str | None = None
    supply: Decimal = Decimal("0")  # raw units
    decimals: int = 0

    @property
    def ui_supply(self) -> Decimal:
        if self.decimals <= 0:
            return self.supply
        return self.supply / (Decimal(10) ** self.decimals)


class HeliusTokenAccountBalance(BaseModel):
    """Entry from getTokenLargestAccounts."""

    address: str
    ui_amount: Decimal = Decimal("0")
