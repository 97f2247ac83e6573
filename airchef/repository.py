"""Reassembles recipes from the Recipes table and its two link tables.

Every read fetches the link tables whole and filters them in memory. Airtable
is small here and it keeps a single, obvious source of truth.
"""

import asyncio
from collections import defaultdict
import logging
from typing import Any, Coroutine

from airchef.airtable import AirtableClient
from airchef.config import TableNames
from airchef.models import (
    IngredientEntry,
    IngredientLinkRow,
    IngredientRow,
    InstructionEntry,
    InstructionLinkRow,
    RecipeRow,
    RecipeView,
)
from airchef.quantity import parse_quantity


logger = logging.getLogger(__name__)


UNKNOWN_INGREDIENT = "Unknown ingredient"


async def fetch_all(*fetches: Coroutine[Any, Any, Any]) -> list[Any]:
    """Run the fetches together. The first failure cancels the others and is
    raised as is, not wrapped in an ``ExceptionGroup``."""
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(fetch) for fetch in fetches]
    except ExceptionGroup as group:
        raise group.exceptions[0]
    return [task.result() for task in tasks]


def ingredient_names(catalog: list[IngredientRow]) -> dict[str, str]:
    return {row.id: row.display_name for row in catalog}


def group_by_recipe[T: (IngredientLinkRow, InstructionLinkRow)](
    rows: list[T],
) -> dict[str, list[T]]:
    groups: dict[str, list[T]] = defaultdict(list)
    for row in rows:
        for recipe_id in dict.fromkeys(row.recipe):
            groups[recipe_id].append(row)
    return groups


def resolve_ingredients(
    links: list[IngredientLinkRow],
    names: dict[str, str],
) -> list[IngredientEntry]:
    entries = []
    for link in links:
        quantity, unit = parse_quantity(link.quantity)
        ingredient_id = link.ingredient_id
        entries.append(
            IngredientEntry(
                id=ingredient_id,
                name=names.get(ingredient_id, UNKNOWN_INGREDIENT),
                quantity=quantity,
                unit=link.unit or unit,
            )
        )
    return entries


def resolve_instructions(
    links: list[InstructionLinkRow],
    *,
    recipe_id: str = "",
) -> list[InstructionEntry]:
    ordered = sorted(links, key=lambda link: link.order or 0)
    orders = [link.order or 0 for link in ordered]
    if orders != list(range(1, len(orders) + 1)):
        logger.warning(
            "Recipe %s has instructions out of sequence: %s", recipe_id, orders
        )
    return [InstructionEntry(text=link.text, order=link.order or 0) for link in ordered]


class RecipeRepository:
    def __init__(
        self,
        store: AirtableClient,
        *,
        tables: TableNames | None = None,
    ) -> None:
        self.store = store
        self.tables = TableNames() if tables is None else tables

    async def catalog(self) -> list[IngredientRow]:
        records = await self.store.list(self.tables.ingredients)
        return IngredientRow.from_records(records, table=self.tables.ingredients)

    async def ingredient_links(self) -> list[IngredientLinkRow]:
        records = await self.store.list(self.tables.recipe_ingredients)
        return IngredientLinkRow.from_records(records, table=self.tables.recipe_ingredients)

    async def instruction_links(self) -> list[InstructionLinkRow]:
        records = await self.store.list(self.tables.recipe_instructions)
        return InstructionLinkRow.from_records(records, table=self.tables.recipe_instructions)

    async def _links(
        self,
    ) -> tuple[dict[str, str], list[IngredientLinkRow], list[InstructionLinkRow]]:
        catalog, ingredients, instructions = await fetch_all(
            self.catalog(),
            self.ingredient_links(),
            self.instruction_links(),
        )
        return ingredient_names(catalog), ingredients, instructions

    async def get(self, id: str) -> RecipeView:
        record = await self.store.get_one(self.tables.recipes, id)
        recipe = RecipeRow.from_record(record, table=self.tables.recipes)
        names, ingredients, instructions = await self._links()
        return RecipeView.from_row(
            recipe,
            ingredients=resolve_ingredients(
                [link for link in ingredients if id in link.recipe], names
            ),
            instructions=resolve_instructions(
                [link for link in instructions if id in link.recipe], recipe_id=id
            ),
        )

    async def list(self) -> tuple[RecipeView, ...]:
        records = await self.store.list(self.tables.recipes, sort_field="Title")
        recipes = RecipeRow.from_records(records, table=self.tables.recipes)
        names, ingredients, instructions = await self._links()
        ingredients_by_recipe = group_by_recipe(ingredients)
        instructions_by_recipe = group_by_recipe(instructions)
        return tuple(
            RecipeView.from_row(
                recipe,
                ingredients=resolve_ingredients(
                    ingredients_by_recipe.get(recipe.id, []), names
                ),
                instructions=resolve_instructions(
                    instructions_by_recipe.get(recipe.id, []), recipe_id=recipe.id
                ),
            )
            for recipe in recipes
        )
