"""Lead repository interface."""

from typing import Protocol

from cadence.core.leads import Lead


class LeadRepository(Protocol):
    """Interface for fetching CRM leads."""

    def list_leads(self) -> list[Lead]:
        ...
