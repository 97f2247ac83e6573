"""Writing recipes back to Airtable."""

import logging
from typing import Any

from airchef.airtable import AirtableClient
from airchef.catalog import IntoleranceCatalog
from airchef.config import TableNames
from airchef.errors import AirchefError
from airchef.models import RecipeRow
from airchef.repository import RecipeRepository, fetch_all
from airchef.schemas import (
    InstructionDraft,
    MeasuredIngredient,
    RecipeDraft,
    parse_request,
)


logger = logging.getLogger(__name__)


def recipe_fields(recipe: RecipeDraft) -> dict[str, Any]:
    fields = {
        "Title": recipe.title,
        "Description": recipe.description,
        "Servings": recipe.servings,
        "PrepTimeMinutes": recipe.prep_time_minutes,
        "CookTimeMinutes": recipe.cook_time_minutes,
    }
    return {k: v for k, v in fields.items() if v is not None}


def known_ingredients(
    ingredients: list[MeasuredIngredient],
    valid_ids: set[str],
) -> list[MeasuredIngredient]:
    kept = [i for i in ingredients if i.id in valid_ids]
    dropped = [i for i in ingredients if i.id not in valid_ids]
    if dropped:
        logger.warning(
            "Dropping ingredients that are not in the catalog: %s",
            ", ".join(f"{i.name or '?'} ({i.id})" for i in dropped),
        )
    return kept


def renumber(instructions: list[InstructionDraft]) -> list[InstructionDraft]:
    """Stored instructions are always numbered 1..n in their given order."""
    ordered = sorted(
        enumerate(instructions),
        key=lambda pair: (pair[1].order is None, pair[1].order or 0, pair[0]),
    )
    orders = [i.order for _, i in ordered]
    expected = list(range(1, len(instructions) + 1))
    if orders != expected:
        logger.info("Renumbering instructions %s to %s", orders, expected)
    return [
        InstructionDraft(text=inst.text, order=n)
        for n, (_, inst) in enumerate(ordered, start=1)
    ]


async def save_recipe(
    recipe: RecipeDraft | dict[str, Any],
    *,
    store: AirtableClient,
    tables: TableNames | None = None,
    intolerances: list[str] | None = None,
) -> RecipeRow:
    """Save a recipe as a Recipes row plus its ingredient and instruction links.

    Ingredient ids missing from the catalog are dropped rather than failing the
    save. Nothing is rolled back: if the links fail after the recipe row was
    created, that row stays behind.
    """
    recipe = parse_request(RecipeDraft, recipe)
    tables = TableNames() if tables is None else tables
    repository = RecipeRepository(store, tables=tables)

    record = await store.create_one(tables.recipes, recipe_fields(recipe))
    created = RecipeRow.from_record(record, table=tables.recipes)
    logger.info("Created recipe %s (%s)", created.id, created.title)

    if recipe.missing_ingredients:
        logger.info(
            "Not saving %d missing ingredients for recipe %s",
            len(recipe.missing_ingredients),
            created.id,
        )

    try:
        catalog = await repository.catalog()
        ingredients = known_ingredients(recipe.ingredients, {row.id for row in catalog})
        if ingredients:
            await store.create_many(
                tables.recipe_ingredients,
                [
                    {
                        "Recipe": [created.id],
                        "Ingredient": [i.id],
                        "Quantity": i.quantity,
                        "Unit": i.unit,
                    }
                    for i in ingredients
                ],
            )

        if recipe.instructions:
            await store.create_many(
                tables.recipe_instructions,
                [
                    {"Recipe": [created.id], "Instruction": i.text, "Order": i.order}
                    for i in renumber(recipe.instructions)
                ],
            )

        if intolerances:
            await link_intolerances(
                created.id, intolerances, store=store, table=tables.intolerances
            )
    except AirchefError:
        logger.error("Recipe %s was created but its links were not all saved", created.id)
        raise

    return created


async def link_intolerances(
    recipe_id: str,
    intolerance_ids: list[str],
    *,
    store: AirtableClient,
    table: str,
) -> None:
    catalog = IntoleranceCatalog(store, table=table)
    wanted = set(intolerance_ids)
    known = [row for row in await catalog.all() if row.id in wanted]
    unknown = wanted - {row.id for row in known}
    if unknown:
        logger.warning("Ignoring unknown intolerances: %s", ", ".join(sorted(unknown)))
    for intolerance in known:
        await catalog.add_recipe(intolerance, recipe_id)


async def delete_recipe(
    recipe_id: str,
    *,
    store: AirtableClient,
    tables: TableNames | None = None,
) -> None:
    """Delete a recipe and the link rows that point at it.

    Airtable clears a deleted record's id out of every link field, so the link
    rows are found and deleted before the recipe row goes.
    """
    tables = TableNames() if tables is None else tables
    repository = RecipeRepository(store, tables=tables)

    await store.get_one(tables.recipes, recipe_id)
    ingredient_links, instruction_links = await fetch_all(
        repository.ingredient_links(),
        repository.instruction_links(),
    )
    ingredients = [l.id for l in ingredient_links if recipe_id in l.recipe]
    instructions = [l.id for l in instruction_links if recipe_id in l.recipe]

    if ingredients:
        await store.delete_many(tables.recipe_ingredients, ingredients)
    if instructions:
        await store.delete_many(tables.recipe_instructions, instructions)
    await store.delete_one(tables.recipes, recipe_id)
    logger.info(
        "Deleted recipe %s with %d ingredient and %d instruction links",
        recipe_id,
        len(ingredients),
        len(instructions),
    )
