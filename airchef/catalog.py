import logging
from typing import Any

from airchef.airtable import AirtableClient
from airchef.models import IngredientRow, IntoleranceRow
from airchef.schemas import IntoleranceIn, IntoleranceUpdate


logger = logging.getLogger(__name__)


class IngredientCatalog:
    def __init__(self, store: AirtableClient, *, table: str = "Ingredients") -> None:
        self.store = store
        self.table = table

    async def all(self) -> list[IngredientRow]:
        records = await self.store.list(self.table, sort_field="Name")
        return IngredientRow.from_records(records, table=self.table)

    async def find_or_create(self, name: str) -> IngredientRow:
        """Ingredients are created the first time someone types them."""
        wanted = name.strip().casefold()
        for row in await self.all():
            if (row.name or "").strip().casefold() == wanted:
                return row
        record = await self.store.create_one(self.table, {"Name": name.strip()})
        logger.info("Created ingredient %s (%s)", record.get("id"), name)
        return IngredientRow.from_record(record, table=self.table)

    async def rename(self, id: str, name: str) -> IngredientRow:
        record = await self.store.update_one(self.table, id, {"Name": name})
        return IngredientRow.from_record(record, table=self.table)

    async def delete(self, id: str) -> None:
        await self.store.delete_one(self.table, id)


def intolerance_fields(
    intolerance: IntoleranceIn | IntoleranceUpdate,
) -> dict[str, Any]:
    fields = {
        "Name": intolerance.name,
        "Description": intolerance.description,
        "SeverityLevel": intolerance.severity_level,
    }
    return {k: v for k, v in fields.items() if v is not None}


class IntoleranceCatalog:
    def __init__(self, store: AirtableClient, *, table: str = "Food Intolerances") -> None:
        self.store = store
        self.table = table

    async def all(self) -> list[IntoleranceRow]:
        records = await self.store.list(self.table, sort_field="Name")
        return IntoleranceRow.from_records(records, table=self.table)

    async def create(self, intolerance: IntoleranceIn) -> IntoleranceRow:
        record = await self.store.create_one(self.table, intolerance_fields(intolerance))
        return IntoleranceRow.from_record(record, table=self.table)

    async def update(self, id: str, intolerance: IntoleranceUpdate) -> IntoleranceRow:
        record = await self.store.update_one(self.table, id, intolerance_fields(intolerance))
        return IntoleranceRow.from_record(record, table=self.table)

    async def delete(self, id: str) -> None:
        await self.store.delete_one(self.table, id)

    async def add_recipe(self, intolerance: IntoleranceRow, recipe_id: str) -> IntoleranceRow:
        # Read-modify-write: concurrent saves touching the same intolerance can
        # lose one another's recipe id.
        if recipe_id in intolerance.recipes:
            return intolerance
        record = await self.store.update_one(
            self.table, intolerance.id, {"Recipes": [*intolerance.recipes, recipe_id]}
        )
        return IntoleranceRow.from_record(record, table=self.table)
