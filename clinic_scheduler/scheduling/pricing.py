"""Final price calculation for new appointments."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from clinic_scheduler.config import settings
from clinic_scheduler.schemas.clinic_schema import Service

CENTS = Decimal("0.01")


def calculate_final_price(
    service: Service,
    is_emergency: bool,
    surcharge: Optional[float] = None,
) -> Decimal:
    """Base service price, marked up by the emergency surcharge when flagged.

    Examples:
        >>> svc = Service(id="s", name="Consult", base_price=Decimal("40.00"))
        >>> calculate_final_price(svc, is_emergency=True, surcharge=0.5)
        Decimal('60.00')
    """
    price = service.base_price
    if is_emergency:
        rate = settings.scheduling.emergency_surcharge if surcharge is None else surcharge
        price = price * (Decimal("1") + Decimal(str(rate)))
    return price.quantize(CENTS, rounding=ROUND_HALF_UP)
