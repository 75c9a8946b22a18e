from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from decimal import Decimal


Amount = Union[int, float, Decimal]


class Exchange(BaseModel):
    """A single transfer of ``amount`` from one account to another."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str = Field(..., alias="from", description="Account the amount is moved from")
    to: str = Field(..., description="Account the amount is moved to")
    amount: Amount = Field(..., description="Amount being exchanged")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if not v > 0:
            raise ValueError('Amount must be positive')
        return v

    @model_validator(mode='after')
    def validate_accounts_differ(self):
        if self.from_ == self.to:
            raise ValueError('Cannot exchange an account with itself')
        return self

    def __repr__(self) -> str:
        return f"Exchange({self.from_!r} -> {self.to!r}: {self.amount!r})"


class RebalanceRequest(BaseModel):
    # Holdings are taken as raw JSON so that the holdings validator, not
    # request parsing, decides which error kind applies.
    current: Optional[Any] = Field(None, description="Account names mapped to current amounts")
    desired: Optional[Any] = Field(None, description="Account names mapped to desired amounts")


class RebalanceResponse(BaseModel):
    exchanges: List[Exchange] = Field(..., description="Exchanges in the order they were generated")
    count: int = Field(..., description="Number of exchanges")
    balances: Dict[str, Amount] = Field(..., description="Holdings after applying every exchange")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    context: Dict[str, Any] = Field(default_factory=dict, description="Structured error details")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(default_factory=datetime.now)
