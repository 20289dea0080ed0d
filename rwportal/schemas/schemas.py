from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal, model_validator

from ..constants import ALL_ZONES_LITERAL

Rate = condecimal(gt=0, max_digits=14, decimal_places=2)
OptionalRate = condecimal(ge=0, max_digits=14, decimal_places=2)


class ZoneRead(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class TariffBase(BaseModel):
    zone: str = Field(default=ALL_ZONES_LITERAL, description="Zone name, or ALL for every zone")
    occupied_rate: Rate  # type: ignore[valid-type]
    unoccupied_rate: Optional[OptionalRate] = None  # type: ignore[valid-type]
    effective_start: date
    effective_end: Optional[date] = None
    note: Optional[str] = None


class TariffCreate(TariffBase):
    @model_validator(mode="after")
    def check_window(self) -> "TariffCreate":
        # Both dates are stored as the first of their month.
        if self.effective_end is not None and self.effective_end.replace(day=1) < self.effective_start.replace(day=1):
            raise ValueError("effective_end must not precede effective_start")
        return self


class TariffUpdate(BaseModel):
    zone: Optional[str] = None
    occupied_rate: Optional[Rate] = None  # type: ignore[valid-type]
    unoccupied_rate: Optional[OptionalRate] = None  # type: ignore[valid-type]
    effective_start: Optional[date] = None
    effective_end: Optional[date] = None
    note: Optional[str] = None


class TariffRead(BaseModel):
    id: int
    zone: str
    occupied_rate: Decimal
    unoccupied_rate: Optional[Decimal]
    effective_start: date
    effective_end: Optional[date]
    note: Optional[str]
    created_at: datetime


class GenerateBillsRequest(BaseModel):
    period: str = Field(description="Billing month as YYYY-MM")


class GenerationSummary(BaseModel):
    total_households: int
    inserted: int
    skipped: int
    no_tarif: int


class GenerationDetails(BaseModel):
    skipped_list: List[str]
    no_tarif_list: List[str]


class GenerateBillsResponse(BaseModel):
    success: bool
    period: date
    summary: GenerationSummary
    details: GenerationDetails
    message: str


class BillHousehold(BaseModel):
    id: int
    house_number: str
    street_name: Optional[str]
    sub_zone_number: Optional[str]
    zone: Optional[str]
    head_of_household: Optional[str]
    is_occupied: bool


class BillRead(BaseModel):
    id: int
    household_id: int
    period: date
    amount: Decimal
    status: str
    amount_paid: Decimal
    created_at: datetime
    household: Optional[BillHousehold]


class BillListResponse(BaseModel):
    data: List[BillRead]
