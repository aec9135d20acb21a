"""Delivery date estimates by postcode zone.

Metro postcodes deliver in 2 days including weekends. Other zones skip
Saturdays and Sundays when counting forward. Postcodes outside every
known range fall back to the remote estimate.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

PINCODE_PATTERN = re.compile(r"^[1-9][0-9]{5}$")

_ZONES = (
    (
        "metro",
        2,
        (
            (110001, 110096),
            (400001, 400104),
            (560001, 560100),
            (600001, 600123),
            (700001, 700156),
            (500001, 500095),
            (411001, 411057),
            (380001, 380061),
            (226001, 226030),
            (302001, 302039),
        ),
    ),
    (
        "tier1",
        3,
        (
            (201001, 201318),
            (122001, 122505),
            (140001, 140308),
            (160001, 160104),
            (282001, 282010),
            (208001, 208027),
            (462001, 462046),
            (751001, 751030),
            (641001, 641659),
            (682001, 682040),
            (695001, 695615),
        ),
    ),
    (
        "tier2",
        5,
        (
            (244001, 244713),
            (248001, 248196),
            (313001, 313902),
            (324001, 324009),
            (360001, 360590),
            (395001, 395010),
            (444001, 444807),
            (492001, 492014),
            (534001, 534484),
            (570001, 571448),
        ),
    ),
)

REMOTE_DAYS = 7


@dataclass(frozen=True)
class DeliveryEstimate:
    zone: str
    days: int
    estimated_date: datetime


def is_valid_pincode(postal_code: str | None) -> bool:
    return bool(postal_code and PINCODE_PATTERN.match(postal_code))


def zone_for(postal_code: str) -> tuple[str, int]:
    if is_valid_pincode(postal_code):
        code = int(postal_code)
        for zone, days, ranges in _ZONES:
            if any(start <= code <= end for start, end in ranges):
                return zone, days
    return "remote", REMOTE_DAYS


def estimate_delivery(postal_code: str | None, placed_at: datetime) -> DeliveryEstimate:
    zone, days = zone_for(postal_code or "")
    estimated = placed_at + timedelta(days=days)
    if zone != "metro":
        while estimated.weekday() >= 5:
            estimated += timedelta(days=1)
    return DeliveryEstimate(zone=zone, days=days, estimated_date=estimated)
