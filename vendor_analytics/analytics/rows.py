"""
Analytics Result Types

Typed, immutable results returned by the analytics services. Amounts are
integer cents.
"""

from typing import List, NamedTuple

from pydantic import BaseModel, ConfigDict, Field


class TimeWindow(NamedTuple):
    """Reporting window in epoch seconds"""
    start: int
    end: int


class DataIntegrityFlag(BaseModel):
    """Stable, non-PII integrity code surfaced to callers"""
    model_config = ConfigDict(frozen=True)

    code: str


class MoneyByStoreEventCurrencyRow(BaseModel):
    """Money metric grouped by store + event + currency"""
    model_config = ConfigDict(frozen=True)

    store_id: int
    event_id: int
    currency: str
    amount_cents: int
    integrity_flags: List[DataIntegrityFlag] = Field(default_factory=list)


class CountByStoreEventRow(BaseModel):
    """Count metric grouped by store + event"""
    model_config = ConfigDict(frozen=True)

    store_id: int
    event_id: int
    count: int = Field(ge=0)
    integrity_flags: List[DataIntegrityFlag] = Field(default_factory=list)


class CountByStoreRow(BaseModel):
    """Count metric grouped by store"""
    model_config = ConfigDict(frozen=True)

    store_id: int
    count: int = Field(ge=0)
    integrity_flags: List[DataIntegrityFlag] = Field(default_factory=list)


class DataIntegrityReport(BaseModel):
    """Integrity flags gathered for one metric run"""
    model_config = ConfigDict(frozen=True)

    metric: str
    store_ids: List[int]
    flags: List[DataIntegrityFlag] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.flags


class KpiResult(BaseModel):
    """Vendor KPI card values for one store and window"""
    model_config = ConfigDict(frozen=True)

    revenue_net_cents: int = Field(ge=0)
    orders_count: int = Field(ge=0)
    tickets_sold: int = Field(ge=0)
    rsvps_confirmed: int = Field(ge=0)
    currency: str


class PlatformRevenue(BaseModel):
    """Admin platform revenue: ticket net + boost net"""
    model_config = ConfigDict(frozen=True)

    ticket_net_cents: int
    boost_net_cents: int
    total_cents: int
