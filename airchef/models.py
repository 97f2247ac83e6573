"""Typed views of the Airtable tables.

Airtable hands back loosely typed field bags. Every record is validated into
one of the row models here as soon as it leaves `AirtableClient`; nothing
downstream reads ``record["fields"]`` directly.
"""

from typing import Any, Self

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from airchef.airtable import Record
from airchef.errors import UpstreamError


def as_id_list(value: Any) -> Any:
    """Links are arrays of ids, but tolerate a bare id or nothing at all."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class Row(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    created_time: str | None = Field(default=None, alias="createdTime")

    @classmethod
    def from_record(cls, record: Record, *, table: str = "") -> Self:
        data = {
            **(record.get("fields") or {}),
            "id": record.get("id"),
            "createdTime": record.get("createdTime"),
        }
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as e:
            raise UpstreamError(
                f"Malformed {cls.__name__} record {record.get('id')!r} in {table or 'Airtable'}"
            ) from e

    @classmethod
    def from_records(cls, records: list[Record], *, table: str = "") -> list[Self]:
        return [cls.from_record(r, table=table) for r in records]

    def to_dict(self) -> dict[str, Any]:
        return {to_camel(k): v for k, v in self.model_dump().items()}


class IngredientRow(Row):
    name: str | None = Field(default=None, alias="Name")

    @property
    def display_name(self) -> str:
        return self.name or self.id


class IntoleranceRow(Row):
    name: str | None = Field(default=None, alias="Name")
    description: str | None = Field(default=None, alias="Description")
    severity_level: str | None = Field(default=None, alias="SeverityLevel")
    recipes: list[str] = Field(default_factory=list, alias="Recipes")

    @field_validator("recipes", mode="before")
    @classmethod
    def links_as_list(cls, value: Any) -> Any:
        return as_id_list(value)


class RecipeRow(Row):
    title: str = Field(default="", alias="Title")
    description: str = Field(default="", alias="Description")
    servings: float | None = Field(default=None, alias="Servings")
    prep_time_minutes: float | None = Field(default=None, alias="PrepTimeMinutes")
    cook_time_minutes: float | None = Field(default=None, alias="CookTimeMinutes")


class IngredientLinkRow(Row):
    recipe: list[str] = Field(default_factory=list, alias="Recipe")
    ingredient: list[str] = Field(default_factory=list, alias="Ingredient")
    quantity: float | str | None = Field(default=None, alias="Quantity")
    unit: str | None = Field(default=None, alias="Unit")

    @field_validator("recipe", "ingredient", mode="before")
    @classmethod
    def links_as_list(cls, value: Any) -> Any:
        return as_id_list(value)

    @property
    def ingredient_id(self) -> str:
        return self.ingredient[0] if self.ingredient else ""


class InstructionLinkRow(Row):
    recipe: list[str] = Field(default_factory=list, alias="Recipe")
    text: str = Field(default="", alias="Instruction")
    order: int | None = Field(default=None, alias="Order")

    @field_validator("recipe", mode="before")
    @classmethod
    def links_as_list(cls, value: Any) -> Any:
        return as_id_list(value)


class View(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class IngredientEntry(View):
    id: str
    name: str
    quantity: float = 0
    unit: str = ""


class InstructionEntry(View):
    text: str
    order: int = 0


class RecipeView(View):
    id: str
    title: str = ""
    description: str = ""
    servings: float | None = None
    prep_time_minutes: float | None = None
    cook_time_minutes: float | None = None
    created_time: str | None = None
    ingredients: list[IngredientEntry] = Field(default_factory=list)
    instructions: list[InstructionEntry] = Field(default_factory=list)

    @classmethod
    def from_row(
        cls,
        row: RecipeRow,
        *,
        ingredients: list[IngredientEntry],
        instructions: list[InstructionEntry],
    ) -> Self:
        return cls(
            id=row.id,
            title=row.title,
            description=row.description,
            servings=row.servings,
            prep_time_minutes=row.prep_time_minutes,
            cook_time_minutes=row.cook_time_minutes,
            created_time=row.created_time,
            ingredients=ingredients,
            instructions=instructions,
        )
