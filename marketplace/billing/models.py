from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from marketplace.fees import BASE_HOSTING_FEE
from .seasons import SeasonName

OutcomeStatus = Literal["already_invoiced", "no_charge", "no_payment_method", "invoiced", "error"]


class BillingRequest(BaseModel):
    season_year: int = Field(ge=2000, le=2100)
    season_name: SeasonName
    base_hosting_fee: int = Field(default=BASE_HOSTING_FEE, ge=0)
    force_rebill: bool = False


class BillingOutcome(BaseModel):
    farmer_id: str
    farm_name: str = ""
    net_sales: Decimal
    discount: int = 0
    hosting_due: int = 0
    status: OutcomeStatus
    invoice_id: Optional[str] = None
    error: Optional[str] = None


class BillingReport(BaseModel):
    season: str
    base_hosting_fee: int
    results: List[BillingOutcome] = []

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)
