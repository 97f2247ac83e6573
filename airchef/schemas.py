"""Request bodies and the shapes we ask the language model to fill in.

JSON keys are camelCase. Request bodies also accept the snake_case field names.
"""

from typing import Any, Self

import pydantic
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from airchef.errors import ValidationError
from airchef.quantity import parse_quantity


def validation_message(e: pydantic.ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_request[T: BaseModel](model: type[T], data: Any) -> T:
    """Validate a request body, turning failures into a 400."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(validation_message(e)) from e


def from_context(info: ValidationInfo, key: str) -> Any:
    return info.context.get(key) if isinstance(info.context, dict) else None


class Body(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# Requests


class IngredientRef(Body):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)


class IntoleranceRef(Body):
    id: str = ""
    name: str = Field(min_length=1)


class GenerationRequest(Body):
    ingredients: list[IngredientRef] = Field(min_length=1)
    intolerances: list[IntoleranceRef | str] = Field(default_factory=list)
    servings: float = Field(default=1, gt=0)

    @property
    def intolerance_names(self) -> list[str]:
        names = [i if isinstance(i, str) else i.name for i in self.intolerances]
        return [n for n in names if n]

    @property
    def ingredient_names(self) -> dict[str, str]:
        return {i.id: i.name for i in self.ingredients}


class MeasuredIngredient(Body):
    """An ingredient line as a user or the UI sends it back to us.

    ``quantity`` may be a number or a string such as ``"250 g"``.
    """

    id: str | None = None
    name: str = ""
    quantity: float = 0
    unit: str = ""

    @model_validator(mode="before")
    @classmethod
    def split_quantity(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        quantity = data.get("quantity")
        if isinstance(quantity, (int, float)) and not isinstance(quantity, bool):
            return data
        parsed = parse_quantity(quantity)
        return {**data, "quantity": parsed.quantity, "unit": data.get("unit") or parsed.unit}


class InstructionDraft(Body):
    text: str
    order: int | None = None


class RecipeDraft(Body):
    title: str = Field(min_length=1)
    description: str = ""
    servings: float | None = None
    prep_time_minutes: float | None = None
    cook_time_minutes: float | None = None
    ingredients: list[MeasuredIngredient] = Field(default_factory=list)
    instructions: list[InstructionDraft] = Field(default_factory=list)
    missing_ingredients: list[MeasuredIngredient] = Field(default_factory=list)


class SaveRecipeRequest(Body):
    recipe: RecipeDraft
    intolerances: list[str] = Field(default_factory=list)


class DeleteRecipeRequest(Body):
    recipe_id: str = Field(min_length=1)


class NutritionRequest(Body):
    ingredients: list[MeasuredIngredient] = Field(min_length=1)
    servings: float = Field(gt=0)
    recipe_title: str = ""


class IngredientIn(Body):
    name: str = Field(min_length=1)


class IntoleranceIn(Body):
    name: str = Field(min_length=1)
    description: str | None = None
    severity_level: str | None = None


class IntoleranceUpdate(Body):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    severity_level: str | None = None


# Generated


class Generated(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class GeneratedIngredient(Generated):
    id: str = Field(description="Id of the ingredient, copied from the list provided.")
    name: str = Field(description="Name of the ingredient, copied from the list provided.")
    quantity: float = Field(ge=0, description="Quantity as a number, e.g. 100, 2, 0.5.")
    unit: str = Field(description="Unit of the quantity, e.g. 'g', 'kg', 'ml', 'cup'.")

    @model_validator(mode="after")
    def offered(self, info: ValidationInfo) -> Self:
        offered = from_context(info, "ingredients")
        if offered is None:
            return self
        if self.id not in offered:
            raise ValueError(f"ingredient id {self.id!r} was not in the list provided")
        if offered[self.id].casefold() != self.name.strip().casefold():
            raise ValueError(
                f"ingredient {self.id!r} is {offered[self.id]!r}, not {self.name!r}"
            )
        return self


class MissingIngredient(Generated):
    name: str = Field(description="Name of an ingredient the recipe needs but that was not provided.")
    quantity: float = Field(ge=0, description="Quantity as a number.")
    unit: str = Field(description="Unit of the quantity.")


class GeneratedInstruction(Generated):
    text: str = Field(description="What to do in this step.")
    order: int = Field(ge=1, description="Position of the step in the recipe, starting at 1.")


class GeneratedRecipe(Generated):
    title: str = Field(description="Name of the recipe.")
    description: str = Field(description="Short description of the recipe.")
    ingredients: list[GeneratedIngredient] = Field(
        description="Ingredients used, each taken from the list provided."
    )
    instructions: list[GeneratedInstruction] = Field(
        description="Steps of the recipe in order."
    )
    servings: float = Field(description="Number of servings, as requested.")
    prep_time_minutes: float = Field(ge=0, description="Preparation time in minutes.")
    cook_time_minutes: float = Field(ge=0, description="Cooking time in minutes.")
    missing_ingredients: list[MissingIngredient] = Field(
        default_factory=list,
        description=(
            "Ingredients the recipe really needs that were not provided. "
            "Never give these an id."
        ),
    )

    @field_validator("servings")
    @classmethod
    def as_requested(cls, servings: float, info: ValidationInfo) -> float:
        requested = from_context(info, "servings")
        if requested is not None and servings != requested:
            raise ValueError(f"asked for {requested:g} servings, got {servings:g}")
        return servings


class GeneratedRecipes(Generated):
    recipes: list[GeneratedRecipe] = Field(min_length=1)


class Vitamins(BaseModel):
    model_config = ConfigDict(extra="forbid")

    A: float = Field(ge=0, description="Vitamin A in µg")
    C: float = Field(ge=0, description="Vitamin C in mg")
    D: float = Field(ge=0, description="Vitamin D in µg")
    E: float = Field(ge=0, description="Vitamin E in mg")
    K: float = Field(ge=0, description="Vitamin K in µg")
    B1: float = Field(ge=0, description="Vitamin B1 in mg")
    B2: float = Field(ge=0, description="Vitamin B2 in mg")
    B3: float = Field(ge=0, description="Vitamin B3 in mg")
    B6: float = Field(ge=0, description="Vitamin B6 in mg")
    B12: float = Field(ge=0, description="Vitamin B12 in µg")
    folate: float = Field(ge=0, description="Folate in µg")


class Minerals(BaseModel):
    model_config = ConfigDict(extra="forbid")

    calcium: float = Field(ge=0, description="Calcium in mg")
    iron: float = Field(ge=0, description="Iron in mg")
    magnesium: float = Field(ge=0, description="Magnesium in mg")
    phosphorus: float = Field(ge=0, description="Phosphorus in mg")
    potassium: float = Field(ge=0, description="Potassium in mg")
    zinc: float = Field(ge=0, description="Zinc in mg")
    copper: float = Field(ge=0, description="Copper in mg")
    manganese: float = Field(ge=0, description="Manganese in mg")
    selenium: float = Field(ge=0, description="Selenium in µg")


class NutritionEstimate(Generated):
    calories: float = Field(ge=0, description="Total calories in kcal")
    protein: float = Field(ge=0, description="Protein in g")
    carbs: float = Field(ge=0, description="Carbohydrates in g")
    fat: float = Field(ge=0, description="Fat in g")
    fiber: float = Field(ge=0, description="Fibre in g")
    sugar: float = Field(ge=0, description="Sugars in g")
    sodium: float = Field(ge=0, description="Sodium in mg")
    vitamins: Vitamins
    minerals: Minerals
    nutrition_notes: str = Field(min_length=10, description="Short nutrition notes")
