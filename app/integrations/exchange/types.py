"""
Exchange Integration - DTOs (Data Transfer Objects)

Pydantic models mirroring the exchange REST contracts used by the
connectivity checks. Read-only types for validation.
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class AccountBalance(BaseModel):
    """Single asset balance from the account endpoint."""
    asset: str
    free: str
    locked: str = "0"


class AccountInfo(BaseModel):
    """
    Account payload returned by the account-info collaborator.

    `is_default` marks the simulated payload served when no real data is
    available; `is_limited_access` marks a response that came back without
    balances. Neither counts as verified account access.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    can_trade: bool = Field(default=False, alias="canTrade")
    account_type: str = Field(default="", alias="accountType")
    balances: List[AccountBalance] = []
    is_default: bool = Field(default=False, alias="isDefault")
    is_limited_access: bool = Field(default=False, alias="isLimitedAccess")

    @property
    def is_real_data(self) -> bool:
        return not self.is_default and not self.is_limited_access
