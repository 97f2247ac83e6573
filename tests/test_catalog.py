import pytest

from airchef.airtable import AirtableClient
from airchef.catalog import IngredientCatalog, IntoleranceCatalog
from airchef.errors import NotFound
from airchef.schemas import IntoleranceIn, IntoleranceUpdate

from conftest import TABLES, FakeAirtable


@pytest.fixture
def ingredients(store: AirtableClient) -> IngredientCatalog:
    return IngredientCatalog(store, table=TABLES.ingredients)


@pytest.fixture
def intolerances(store: AirtableClient) -> IntoleranceCatalog:
    return IntoleranceCatalog(store, table=TABLES.intolerances)


@pytest.mark.asyncio
async def test_all_ingredients_sorted_by_name(
    ingredients: IngredientCatalog, pantry: dict[str, str]
) -> None:
    assert [row.name for row in await ingredients.all()] == ["Banane", "Pomme", "Sucre"]


@pytest.mark.asyncio
async def test_find_or_create_reuses_existing(
    airtable: FakeAirtable, ingredients: IngredientCatalog, pantry: dict[str, str]
) -> None:
    row = await ingredients.find_or_create("  pomme ")
    assert row.id == pantry["Pomme"]
    assert airtable.writes() == []


@pytest.mark.asyncio
async def test_find_or_create_creates(
    airtable: FakeAirtable, ingredients: IngredientCatalog, pantry: dict[str, str]
) -> None:
    row = await ingredients.find_or_create(" Kiwi ")
    assert row.name == "Kiwi"
    assert airtable.tables[TABLES.ingredients][row.id]["fields"] == {"Name": "Kiwi"}


@pytest.mark.asyncio
async def test_rename_and_delete(
    airtable: FakeAirtable, ingredients: IngredientCatalog, pantry: dict[str, str]
) -> None:
    row = await ingredients.rename(pantry["Pomme"], "Pomme Golden")
    assert row.name == "Pomme Golden"

    await ingredients.delete(pantry["Pomme"])
    assert pantry["Pomme"] not in airtable.tables[TABLES.ingredients]

    with pytest.raises(NotFound):
        await ingredients.delete(pantry["Pomme"])


@pytest.mark.asyncio
async def test_intolerance_lifecycle(
    airtable: FakeAirtable, intolerances: IntoleranceCatalog
) -> None:
    created = await intolerances.create(
        IntoleranceIn(name="Lactose", severity_level="High")
    )
    assert airtable.tables[TABLES.intolerances][created.id]["fields"] == {
        "Name": "Lactose",
        "SeverityLevel": "High",
    }

    updated = await intolerances.update(
        created.id, IntoleranceUpdate(description="Sucre du lait")
    )
    assert updated.name == "Lactose"
    assert updated.description == "Sucre du lait"
    assert updated.to_dict()["severityLevel"] == "High"

    await intolerances.delete(created.id)
    assert await intolerances.all() == []


@pytest.mark.asyncio
async def test_add_recipe_is_idempotent(
    airtable: FakeAirtable, intolerances: IntoleranceCatalog
) -> None:
    id = airtable.add(TABLES.intolerances, {"Name": "Gluten", "Recipes": "recA"})
    (row,) = await intolerances.all()
    assert row.recipes == ["recA"]

    row = await intolerances.add_recipe(row, "recB")
    assert row.recipes == ["recA", "recB"]

    writes = len(airtable.writes())
    await intolerances.add_recipe(row, "recB")
    assert len(airtable.writes()) == writes
    assert airtable.tables[TABLES.intolerances][id]["fields"]["Recipes"] == ["recA", "recB"]
