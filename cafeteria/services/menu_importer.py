"""
Menu feed importer.

Normalizes one feed document (a single location, date and period) into store
writes. Re-running the same document leaves row counts unchanged; only the
descriptive fields of categories and foods are refreshed, so corrections made
upstream propagate.

Each item runs in its own SAVEPOINT: a malformed or unstorable item is rolled
back and reported while the rest of the document proceeds. A document whose
location or period cannot be resolved is rolled back as a whole.
"""
import json
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cafeteria.exceptions import MenuError, StorageError, ValidationError
from cafeteria.models import Category
from cafeteria.services.menu_feed import FeedCategory, FeedItem, MenuDocument, parse_nutrient_value
from cafeteria.services.store import FoodDescriptor, MenuStore
from cafeteria.utils.logger import get_logger

logger = get_logger(__name__)


class ItemFailure(BaseModel):
    category: Optional[str] = None
    item_name: Optional[str] = None
    error: str


class ImportReport(BaseModel):
    location: str
    menu_date: date
    period: str
    categories: int = 0
    items_processed: int = 0
    menu_items_created: int = 0
    menu_items_existing: int = 0
    failures: list[ItemFailure] = []


class FileFailure(BaseModel):
    path: str
    error: str


class BatchReport(BaseModel):
    documents: list[ImportReport] = []
    failures: list[FileFailure] = []

    @property
    def succeeded(self) -> int:
        return len(self.documents)

    @property
    def failed(self) -> int:
        return len(self.failures)


def _name_of(entry: Any) -> Optional[str]:
    if isinstance(entry, dict) and entry.get("name") is not None:
        return str(entry["name"])
    return None


def _validation_message(e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


class MenuImporter:
    def __init__(self, db: AsyncSession, store: Optional[MenuStore] = None):
        self.db = db
        self.store = store or MenuStore(db)

    # ------------------------------------------------------------------
    # Single document
    # ------------------------------------------------------------------

    async def import_document(self, data: Any) -> ImportReport:
        """Import one parsed feed document and commit it.

        Raises ValidationError when the document itself is malformed and
        StorageError when its location or period cannot be resolved or the
        commit fails; in every case nothing from the document is kept.
        """
        try:
            document = MenuDocument.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid menu document: {_validation_message(e)}") from e

        logger.info(
            f"Importing menu: location={document.location_id}, "
            f"date={document.menu_date.isoformat()}, period={document.period.name}"
        )
        try:
            report = await self._import(document)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Menu import failed: {e}") from e
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Menu imported: location={report.location}, date={report.menu_date.isoformat()}, "
            f"period={report.period}, created={report.menu_items_created}, "
            f"existing={report.menu_items_existing}, failed={len(report.failures)}"
        )
        return report

    async def _import(self, document: MenuDocument) -> ImportReport:
        location = await self.store.find_location(document.location_id)
        if location is None:
            location = await self.store.create_location(document.location_id)
        period = await self.store.find_or_create_period(document.period.id, document.period.name)
        location_id, period_id = location.id, period.id

        report = ImportReport(
            location=document.location_id,
            menu_date=document.menu_date,
            period=period.name,
        )

        for raw_category in document.period.categories:
            category = await self._import_category(raw_category, report)
            if category is None:
                continue
            block, category_row = category
            report.categories += 1

            for position, raw_item in enumerate(block.items):
                report.items_processed += 1
                try:
                    async with self.db.begin_nested():
                        created = await self._import_item(
                            raw_item, position, document.menu_date, location_id, period_id, category_row.id
                        )
                except (ValidationError, StorageError) as e:
                    logger.warning(
                        f"Skipping item {_name_of(raw_item)!r} in category {block.name!r}: {e}"
                    )
                    report.failures.append(
                        ItemFailure(category=block.name, item_name=_name_of(raw_item), error=str(e))
                    )
                    continue

                if created:
                    report.menu_items_created += 1
                else:
                    report.menu_items_existing += 1

        return report

    async def _import_category(
        self, raw_category: Any, report: ImportReport
    ) -> Optional[tuple[FeedCategory, Category]]:
        try:
            block = FeedCategory.model_validate(raw_category)
        except PydanticValidationError as e:
            message = f"Invalid category: {_validation_message(e)}"
            logger.warning(f"Skipping category {_name_of(raw_category)!r}: {message}")
            report.failures.append(ItemFailure(category=_name_of(raw_category), error=message))
            return None

        try:
            async with self.db.begin_nested():
                category = await self.store.upsert_category(block.id, block.name, block.sort_order)
        except StorageError as e:
            logger.warning(f"Skipping category {block.name!r}: {e}")
            report.failures.append(ItemFailure(category=block.name, error=str(e)))
            return None
        return block, category

    async def _import_item(
        self,
        raw_item: Any,
        position: int,
        menu_date: date,
        location_id: int,
        period_id: int,
        category_id: int,
    ) -> bool:
        try:
            item = FeedItem.model_validate(raw_item)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid item: {_validation_message(e)}") from e

        food = await self.store.upsert_food(
            FoodDescriptor(
                name=item.name,
                mrn=item.mrn,
                mrn_full=item.mrn_full,
                description=item.desc,
                portion=item.portion,
                qty=item.qty,
                ingredients=item.ingredients,
            )
        )

        for entry in item.nutrients:
            nutrient = await self.store.upsert_nutrient(entry.name, entry.uom or None)
            value_numeric, value_raw = parse_nutrient_value(entry)
            await self.store.set_food_nutrient_value(food.id, nutrient.id, value_numeric, value_raw)

        # Feed position stands in for a missing sort order
        sort_order = item.sort_order if item.sort_order is not None else position
        return await self.store.record_menu_occurrence(
            menu_date,
            location_id,
            period_id,
            category_id,
            food.id,
            sort_order=sort_order,
            external_item_id=item.id,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def import_files(self, paths: Iterable[Union[str, Path]]) -> BatchReport:
        """Import each file as its own document; failures never stop the batch."""
        batch = BatchReport()
        for path in paths:
            path = Path(path)
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.error(f"Error reading {path.name}: {e}")
                batch.failures.append(FileFailure(path=str(path), error=f"Unreadable feed file: {e}"))
                continue

            try:
                report = await self.import_document(data)
            except MenuError as e:
                logger.error(f"Error importing {path.name}: {e}")
                batch.failures.append(FileFailure(path=str(path), error=str(e)))
                continue
            batch.documents.append(report)

        logger.info(f"Batch import complete: {batch.succeeded} imported, {batch.failed} failed")
        return batch

    async def import_directory(self, directory: Union[str, Path]) -> BatchReport:
        directory = Path(directory)
        files = sorted(p for p in directory.glob("*.json") if p.is_file())
        if not files:
            logger.info(f"No .json files found in {directory}")
            return BatchReport()
        return await self.import_files(files)
