"""
Mock source documents.

Generates documents for demos and driver training. They are served by the
mock document source and carry customer ids with the mock prefix so they
can be purged later.
"""

import random
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional

from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.services.external import SourceDocument

MOCK_LOTS = ["LOT001", "LOT002", "LOT003", None]
MOCK_WAREHOUSES = ["WH-Vytilla", "WH-Thodupuzha"]

MOCK_CUSTOMERS = [
    {"suffix": "001", "name": "ABC Pharmaceuticals", "address": "12 MG Road", "city": "Kochi", "pincode": "682016", "phone": "9000000001", "route": "KOCHI-NORTH"},
    {"suffix": "002", "name": "City Medicals", "address": "4 Market Lane", "city": "Kochi", "pincode": "682011", "phone": "9000000002", "route": "KOCHI-NORTH"},
    {"suffix": "003", "name": "Lifeline Drug House", "address": "88 Temple Road", "city": "Aluva", "pincode": "683101", "phone": "9000000003", "route": "ALUVA"},
    {"suffix": "004", "name": "Care Plus Pharmacy", "address": "7 Bypass Junction", "city": "Thodupuzha", "pincode": "685584", "phone": "9000000004", "route": "IDUKKI"},
    {"suffix": "005", "name": "Green Cross Chemists", "address": "23 Church Street", "city": "Muvattupuzha", "pincode": "686661", "phone": "9000000005", "route": "IDUKKI"},
]


def _random_doc_id(rng: random.Random) -> str:
    return "".join(rng.choice("0123456789") for _ in range(10))


def generate_mock_docs(
    count: int = 10,
    real_phone_number: Optional[str] = None,
    real_route: Optional[str] = None,
    real_lot: Optional[str] = None,
    rng: Optional[random.Random] = None
) -> List[SourceDocument]:
    """
    Generate `count` mock source documents.
    
    When a real phone number is given the first document goes to the first
    mock customer with that phone, so a tester receives the tracking SMS;
    the route and lot of that document can be pinned as well.
    """
    rng = rng or random.Random()
    today = utcnow()
    docs = []
    
    for i in range(count):
        pinned = i == 0 and real_phone_number
        customer = MOCK_CUSTOMERS[0] if pinned else rng.choice(MOCK_CUSTOMERS)
        
        docs.append(SourceDocument(
            doc_id=_random_doc_id(rng),
            status="",
            route_id=(real_route or customer["route"]) if pinned else customer["route"],
            lot_nbr=(real_lot if real_lot else rng.choice(MOCK_LOTS)) if pinned else rng.choice(MOCK_LOTS),
            warehouse_location=rng.choice(MOCK_WAREHOUSES),
            customer_id=f"{settings.mock_customer_prefix}{customer['suffix']}",
            customer_name=customer["name"],
            customer_address=customer["address"],
            customer_city=customer["city"],
            customer_pincode=customer["pincode"],
            customer_phone=real_phone_number if pinned else customer["phone"],
            doc_date=today - timedelta(days=rng.randint(0, 1)),
            doc_amount=Decimal(str(round(rng.uniform(100.01, 10000.0), 2))),
        ))
    
    return docs
