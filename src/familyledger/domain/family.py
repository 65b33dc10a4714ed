"""Family domain service."""

from typing import Optional

from familyledger.database.base import Database
from familyledger.domain.currency import normalize_currency
from familyledger.domain.entities import Family
from familyledger.domain.errors import NotFoundError, ValidationError, family_not_found


class FamilyService:
    """Service for managing families (household tenants)."""

    def __init__(self, db: Database):
        """Initialize family service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_family(self, name: str, currency: str) -> int:
        """Create a new family.

        Args:
            name: Family name
            currency: Base currency used for family-wide reporting

        Returns:
            Family ID

        Raises:
            ValidationError: If the name is empty or the currency is unknown
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Family name cannot be empty")
        return self.db.create_family(name=name, currency=normalize_currency(currency))

    def get_family(self, family_id: int) -> Optional[Family]:
        """Get family by ID."""
        return self.db.get_family(family_id)

    def require_family(self, family_id: int) -> Family:
        """Get family by ID, raising NotFoundError if it does not exist."""
        family = self.db.get_family(family_id)
        if family is None:
            raise NotFoundError(family_not_found(family_id))
        return family

    def list_families(self) -> list[Family]:
        return self.db.list_families()

    def delete_family(self, family_id: int) -> None:
        """Delete a family and everything it owns.

        Raises:
            NotFoundError: If the family does not exist
        """
        self.require_family(family_id)
        self.db.delete_family(family_id)
