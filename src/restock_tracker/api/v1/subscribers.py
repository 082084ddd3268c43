"""Subscriber reconciliation endpoint."""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from restock_tracker.api.dependencies import get_reconciliation_service
from restock_tracker.exceptions import RestockTrackerError
from restock_tracker.services import ReconciliationService
from restock_tracker.services.models import EnrichedSignupRecord

logger = structlog.get_logger()

router = APIRouter()


class SubscriberRecord(BaseModel):
    """One subscriber signup with alert, order and stock status."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    profile_id: str
    email: str | None = None
    name: str = ""
    product_id: str | None = None
    product_title: str | None = None
    product_url: str | None = None
    variant_id: str | None = None
    signup_date: str | None = None
    alert_sent: bool = False
    ordered: bool = False
    inventory: int | None = Field(None, description="Total stock across variants, null if unknown")
    sku: str | None = None
    shopify_customer_id: str | None = None

    @classmethod
    def from_record(cls, record: EnrichedSignupRecord) -> "SubscriberRecord":
        return cls(
            id=record.id,
            profile_id=record.profile_id,
            email=record.email,
            name=record.name,
            product_id=record.product_id,
            product_title=record.product_title,
            product_url=record.product_url,
            variant_id=record.variant_id,
            signup_date=record.signup_date,
            alert_sent=record.alert_sent,
            ordered=record.ordered,
            inventory=record.inventory,
            sku=record.sku,
            shopify_customer_id=record.commerce_customer_id,
        )


class SubscribersResponse(BaseModel):
    """Reconciled subscriber list, newest signup first."""

    subscribers: list[SubscriberRecord]


class SubscribersErrorResponse(BaseModel):
    error: str
    subscribers: list[SubscriberRecord] = Field(default_factory=list)


@router.get(
    "",
    response_model=SubscribersResponse,
    responses={500: {"model": SubscribersErrorResponse}},
)
async def list_subscribers(
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> SubscribersResponse | JSONResponse:
    """
    Reconcile every back-in-stock signup.

    For each list member and signup, reports whether a restock alert was sent
    after the signup, whether the product was ordered afterwards, and the
    product's current stock and SKU. Members without a signup event get one
    row with empty product fields.

    Lookups against Shopify degrade to null values on failure. Any other failure
    (an unreadable Klaviyo list, missing credentials, a malformed list entry)
    fails the request with an error body and an empty list.
    """
    try:
        records = await service.run()
    except RestockTrackerError as e:
        logger.error("Subscriber reconciliation failed", error=str(e))
        return JSONResponse(
            status_code=500,
            content=SubscribersErrorResponse(error=str(e)).model_dump(),
        )
    except Exception as e:
        logger.exception("Unexpected subscriber reconciliation error", error=str(e))
        return JSONResponse(
            status_code=500,
            content=SubscribersErrorResponse(error=str(e)).model_dump(),
        )

    return SubscribersResponse(
        subscribers=[SubscriberRecord.from_record(record) for record in records]
    )
