"""
Smart price resolution for a service on a specific vehicle.

The resolver only reads an immutable catalog snapshot. Callers load a fresh
snapshot each time a line is added to an order and store the result on the
line; nothing here is cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .domain import Car, CarGroup, PriceQuote, PriceSource, Service
from .errors import NotFound


@dataclass(frozen=True)
class PricingCatalog:
    services: dict[int, Service] = field(default_factory=dict)
    cars: dict[int, Car] = field(default_factory=dict)
    # order matters: the first matching group wins
    groups: tuple[CarGroup, ...] = ()

    @classmethod
    def build(
        cls,
        services: Iterable[Service],
        cars: Iterable[Car],
        groups: Iterable[CarGroup],
    ) -> "PricingCatalog":
        return cls(
            services={s.service_id: s for s in services},
            cars={c.car_id: c for c in cars},
            groups=tuple(groups),
        )


def find_car_group(car: Car, groups: Iterable[CarGroup]) -> Optional[CarGroup]:
    for group in groups:
        if any(spec.matches(car) for spec in group.models):
            return group
    return None


def resolve_price(service_id: int, car_id: Optional[int], catalog: PricingCatalog) -> PriceQuote:
    service = catalog.services.get(service_id)
    if service is None:
        raise NotFound(f"Service {service_id} not found.")

    base = PriceQuote(price=service.base_price, source=PriceSource.BASE)
    if car_id is None:
        return base

    car = catalog.cars.get(car_id)
    if car is None:
        return base

    group = find_car_group(car, catalog.groups)
    if group is not None and group.group_id in service.price_overrides:
        return PriceQuote(price=service.price_overrides[group.group_id], source=PriceSource.GROUP)

    return base
