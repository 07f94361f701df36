"""
Pydantic models for API requests.
These define the contract between the API and external clients.

Request models are deliberately loose: required-field and range checks run
in the use cases, so that a bad payload is reported as a 400 with the domain
model's errors rather than a 422 from request parsing.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from shop.domain import OrderHeader, OrderVM


class UpsertCategoryRequest(BaseModel):
    """Create (id 0 or omitted) or update a category."""

    id: int = 0
    name: Optional[str] = None
    display_order: Optional[int] = None

    def to_domain_data(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ShipOrderRequest(BaseModel):
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None

    def to_order_vm(self, order_id: int) -> OrderVM:
        return OrderVM(
            order_header=OrderHeader(
                id=order_id,
                carrier=self.carrier,
                tracking_number=self.tracking_number,
            )
        )
