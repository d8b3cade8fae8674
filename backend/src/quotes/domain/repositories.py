from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Tuple

from .entities import Quote

class AbstractQuoteRepository(ABC):
    """Interface abstraite pour le repository des Devis."""

    @abstractmethod
    async def get_by_id(self, quote_id: int, for_update: bool = False) -> Optional[Quote]:
        """Récupère un devis par son ID, incluant sections, items et client.

        Avec `for_update`, la ligne du devis est verrouillée jusqu'à la fin de la transaction.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_by_token(self, public_token: str) -> Optional[Quote]:
        raise NotImplementedError

    @abstractmethod
    async def list(self, filters: Dict[str, Any], limit: int, offset: int) -> Tuple[List[Quote], int]:
        raise NotImplementedError

    @abstractmethod
    async def add(self, quote_data: Dict[str, Any], sections_data: List[Dict[str, Any]]) -> Quote:
        """Ajoute un devis avec ses sections; chaque section porte la clé `items`."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, quote_id: int, changes: Dict[str, Any]) -> Optional[Quote]:
        raise NotImplementedError

    @abstractmethod
    async def replace_sections(self, quote_id: int, sections_data: List[Dict[str, Any]]) -> None:
        """Remplace toutes les sections (et leurs items) du devis."""
        raise NotImplementedError

    @abstractmethod
    async def update_items(self, quote_id: int, items_changes: Dict[int, Dict[str, Any]]) -> None:
        """Applique des changements item par item (clé: ID de l'item)."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, quote_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def numbers_with_prefix(self, prefix: str) -> List[str]:
        """Numéros de devis existants commençant par le préfixe donné."""
        raise NotImplementedError
