"""Caller identity supplied by the upstream identity provider."""

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID


class Role(StrEnum):
    """Marketplace role of a caller or a live position."""

    CUSTOMER = "customer"
    PROVIDER = "provider"

    @property
    def counterparty(self) -> "Role":
        return Role.PROVIDER if self is Role.CUSTOMER else Role.CUSTOMER


@dataclass(frozen=True)
class Caller:
    """Verified identity attached to a request."""

    user_id: UUID
    role: Role
