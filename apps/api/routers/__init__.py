"""Routers package."""

from . import (
    health,
    auth,
    credits,
    reports,
    airdrop,
    wallet,
    burns,
)
