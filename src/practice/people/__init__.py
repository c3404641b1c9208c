"""People and the roles they hold on clients."""

from .person_models import ClientParty, PartyRole, Person

__all__ = ["ClientParty", "PartyRole", "Person"]
