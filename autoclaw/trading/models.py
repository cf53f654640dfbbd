"""
Data models for route discovery, quoting and swap planning
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class ExchangePool(BaseModel):
    """Pairwise pool registered on the BiPoolManager"""
    exchange_id: str
    assets: List[str]


class Hop(BaseModel):
    """One pairwise swap through a single pool"""
    exchange_id: str
    token_in: str
    token_out: str


class Route(BaseModel):
    """Ordered hops from token_in to token_out (direct or through one hub)"""
    hops: List[Hop]

    @field_validator("hops")
    @classmethod
    def _validate_hops(cls, hops: List[Hop]) -> List[Hop]:
        if not hops:
            raise ValueError("Route must contain at least one hop")
        if len(hops) > 2:
            raise ValueError(f"Route has {len(hops)} hops, at most 2 are supported")
        for current, following in zip(hops, hops[1:]):
            if current.token_out.lower() != following.token_in.lower():
                raise ValueError(
                    f"Broken route: hop output {current.token_out} != next hop input {following.token_in}"
                )
        return hops

    @property
    def token_in(self) -> str:
        return self.hops[0].token_in

    @property
    def token_out(self) -> str:
        return self.hops[-1].token_out

    @property
    def is_direct(self) -> bool:
        return len(self.hops) == 1

    def __len__(self) -> int:
        return len(self.hops)


class Quote(BaseModel):
    """End-to-end quote for a route"""
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    rate: float
    route: Route
    exchange_provider: str
    exchange_id: str
    timestamp: datetime = Field(default_factory=datetime.now)


class SwapCall(BaseModel):
    """Encoded on-chain call for a single hop"""
    hop_index: int
    to: str
    data: str
    hop: Hop
    amount_in: int
    amount_out_min: int


class SwapPlan(BaseModel):
    """Ordered calls to execute a route, one per hop"""
    calls: List[SwapCall]
    amount_in: int
    min_amount_out: int

    def __len__(self) -> int:
        return len(self.calls)


class TradeResult(BaseModel):
    """Result of an executed swap"""
    tx_hash: str
    tx_hashes: List[str]
    amount_in: int
    amount_out: int
    rate: float
    from_symbol: str
    to_symbol: str
    approve_tx_hash: Optional[str] = None
