"""
Customer Service.

Customer master records are upserted as a side effect of scanning. Geo
coordinates are only ever written from a delivery.
"""

import logging
from typing import List, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.models.customer import Customer
from backend.app.schemas.customer import CustomerLightResponse, CustomerResponse
from backend.app.services.external import SourceDocument

logger = logging.getLogger(__name__)


class CustomerService:
    
    @staticmethod
    async def upsert_from_source(db: AsyncSession, source_doc: SourceDocument) -> Customer:
        """
        Create or refresh a customer from a source document.
        
        Runs inside the caller's transaction (flush only). Geo coordinates
        are left untouched.
        """
        customer = await db.get(Customer, source_doc.customer_id)
        now = utcnow()
        
        if customer is None:
            customer = Customer(
                id=source_doc.customer_id,
                geo_latitude=None,
                geo_longitude=None,
                created_at=now,
            )
            db.add(customer)
        
        customer.firm_name = source_doc.customer_name
        customer.address = source_doc.customer_address
        customer.city = source_doc.customer_city
        customer.pincode = source_doc.customer_pincode
        customer.phone = source_doc.customer_phone
        customer.last_updated_at = now
        
        await db.flush()
        return customer
    
    @staticmethod
    async def update_delivery_location(
        db: AsyncSession,
        customer_id: str,
        latitude: float,
        longitude: float
    ) -> Customer:
        """Record where the customer was actually delivered to (caller commits)."""
        customer = await db.get(Customer, customer_id)
        if customer is None:
            raise ResourceNotFoundError("Customer", customer_id)
        
        customer.geo_latitude = str(latitude)
        customer.geo_longitude = str(longitude)
        customer.last_updated_at = utcnow()
        return customer
    
    @staticmethod
    async def get_customer_master_data(
        db: AsyncSession,
        lightweight: bool = False
    ) -> List[Union[CustomerLightResponse, CustomerResponse]]:
        """All customers sorted by firm name."""
        result = await db.execute(select(Customer).order_by(Customer.firm_name, Customer.id))
        customers = result.scalars().all()
        
        schema = CustomerLightResponse if lightweight else CustomerResponse
        return [schema.model_validate(customer) for customer in customers]
