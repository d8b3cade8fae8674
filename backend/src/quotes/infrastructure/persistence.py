import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.clients.models import Project
from src.quotes import models
from src.quotes.domain.entities import Quote
from src.quotes.domain.exceptions import QuoteNotFoundException
from src.billing.domain.exceptions import QuoteItemNotFoundException
from src.quotes.domain.repositories import AbstractQuoteRepository
from src.core.exceptions import ConflictException

logger = logging.getLogger(__name__)

FILTERABLE_FIELDS = ("project_id", "status")

def _quote_load_options():
    return (
        selectinload(models.Quote.sections).selectinload(models.QuoteSection.items),
        selectinload(models.Quote.project).selectinload(Project.client),
    )

def _build_sections_db(sections_data: List[Dict[str, Any]]) -> List[models.QuoteSection]:
    return [
        models.QuoteSection(
            **{key: value for key, value in section.items() if key != "items"},
            items=[models.QuoteItem(**item) for item in section.get("items", [])],
        )
        for section in sections_data
    ]

class SQLAlchemyQuoteRepository(AbstractQuoteRepository):
    """Implémentation SQLAlchemy du repository de Devis."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_db(self, quote_id: int) -> Optional[models.Quote]:
        stmt = select(models.Quote).where(models.Quote.id == quote_id).options(*_quote_load_options())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, quote_id: int, for_update: bool = False) -> Optional[Quote]:
        stmt = select(models.Quote).where(models.Quote.id == quote_id)
        if for_update:
            # Verrou ligne (ignoré par SQLite, effectif sur PostgreSQL)
            stmt = stmt.with_for_update(of=models.Quote)
        stmt = stmt.options(*_quote_load_options()).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        quote_db = result.scalar_one_or_none()
        if not quote_db:
            logger.debug(f"Devis ID {quote_id} non trouvé dans get_by_id().")
            return None
        return Quote.model_validate(quote_db)

    async def get_by_token(self, public_token: str) -> Optional[Quote]:
        stmt = (
            select(models.Quote)
            .where(models.Quote.public_token == public_token)
            .options(*_quote_load_options())
        )
        result = await self.session.execute(stmt)
        quote_db = result.scalar_one_or_none()
        return Quote.model_validate(quote_db) if quote_db else None

    async def list(self, filters: Dict[str, Any], limit: int, offset: int) -> Tuple[List[Quote], int]:
        conditions = [
            getattr(models.Quote, field) == value
            for field, value in filters.items()
            if field in FILTERABLE_FIELDS and value is not None
        ]
        stmt = (
            select(models.Quote)
            .where(*conditions)
            .options(*_quote_load_options())
            .order_by(models.Quote.created_at.desc(), models.Quote.id.desc())
            .limit(limit)
            .offset(offset)
        )
        count_stmt = select(func.count()).select_from(models.Quote).where(*conditions)
        result = await self.session.execute(stmt)
        total = await self.session.scalar(count_stmt)
        return [Quote.model_validate(q_db) for q_db in result.scalars().all()], total or 0

    async def add(self, quote_data: Dict[str, Any], sections_data: List[Dict[str, Any]]) -> Quote:
        new_quote_db = models.Quote(**quote_data)
        new_quote_db.sections = _build_sections_db(sections_data)
        self.session.add(new_quote_db)
        try:
            await self.session.flush()
        except IntegrityError as e:
            logger.error(f"Erreur intégrité ajout devis {quote_data.get('quote_number')}: {e}", exc_info=True)
            raise ConflictException(f"Violation de contrainte à l'ajout du devis: {e.orig}") from e
        logger.info(f"Devis ID {new_quote_db.id} ({new_quote_db.quote_number}) ajouté.")
        created = await self.get_by_id(new_quote_db.id)
        return created

    async def update(self, quote_id: int, changes: Dict[str, Any]) -> Optional[Quote]:
        quote_db = await self.session.get(models.Quote, quote_id)
        if not quote_db:
            logger.warning(f"Tentative MAJ devis ID {quote_id} non trouvé.")
            return None
        for field, value in changes.items():
            setattr(quote_db, field, value)
        quote_db.updated_at = datetime.utcnow()
        await self.session.flush()
        return await self.get_by_id(quote_id)

    async def replace_sections(self, quote_id: int, sections_data: List[Dict[str, Any]]) -> None:
        quote_db = await self._get_db(quote_id)
        if not quote_db:
            raise QuoteNotFoundException(quote_id)
        # delete-orphan: les anciennes sections et leurs items sont supprimés au flush
        quote_db.sections = _build_sections_db(sections_data)
        await self.session.flush()
        logger.info(f"Devis ID {quote_id}: {len(sections_data)} section(s) remplacée(s).")

    async def update_items(self, quote_id: int, items_changes: Dict[int, Dict[str, Any]]) -> None:
        if not items_changes:
            return
        stmt = (
            select(models.QuoteItem)
            .join(models.QuoteSection, models.QuoteItem.section_id == models.QuoteSection.id)
            .where(models.QuoteSection.quote_id == quote_id, models.QuoteItem.id.in_(list(items_changes)))
        )
        result = await self.session.execute(stmt)
        items_db = {item.id: item for item in result.scalars().all()}
        missing = sorted(set(items_changes) - set(items_db))
        if missing:
            raise QuoteItemNotFoundException(missing[0], quote_id)
        for item_id, changes in items_changes.items():
            for field, value in changes.items():
                setattr(items_db[item_id], field, value)
        await self.session.flush()

    async def delete(self, quote_id: int) -> bool:
        quote_db = await self._get_db(quote_id)
        if not quote_db:
            return False
        await self.session.delete(quote_db)
        await self.session.flush()
        logger.info(f"Devis ID {quote_id} supprimé.")
        return True

    async def numbers_with_prefix(self, prefix: str) -> List[str]:
        stmt = select(models.Quote.quote_number).where(models.Quote.quote_number.startswith(prefix))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
