import json

from airchef.schemas import GenerationRequest, NutritionRequest


SYSTEM_PROMPT = """
You are a world-class, creative, and detail-oriented chef.
You always answer with JSON matching the schema you are given and nothing else.
""".strip()


RECIPES_V1 = """
Create between 2 and 4 delicious recipes using ONLY the ingredients provided.

STRICT CONSTRAINTS:
- Write every title, description and instruction in {language}.
- Use every ingredient provided at least once across the recipes.
- Do NOT add any other ingredient to a recipe's ingredients.
- For each ingredient you use, copy its id and name exactly as provided.
- Respect these food intolerances: {intolerances}.
- Each recipe serves {servings} and its quantities are scaled for {servings} serving(s).
- Instructions never mention an ingredient that is not in the recipe.
- If a recipe really cannot work without something that was not provided,
  list it under missingIngredients with a name, quantity and unit but no id.

INGREDIENTS PROVIDED: {ingredients}

GUIDELINES:
1. Vary the techniques (raw, cooked, blended, sautéed, grilled).
2. Offer different styles (starter, main, dessert, drink).
3. Balance the flavours in each recipe.
4. Write clear sequential instructions, numbered from 1.
5. Give preparation and cooking times in minutes.

EXAMPLES OF GOOD ANSWERS:
- apple + banana: an apple and banana smoothie, a blended fruit compote
- chicken + carrot: chicken sautéed with carrots, a chicken salad
- tomato + mozzarella: a caprese salad, stuffed tomatoes
""".strip()


NUTRITION_V1 = """
You are an expert nutritionist. Estimate the nutritional value of this recipe precisely.

RECIPE: {title}
INGREDIENTS: {ingredients}
SERVINGS: {servings}

RULES:
1. Give values for exactly {servings} serving(s).
2. Only rely on standard, verified nutrition data.
3. Include every vitamin and mineral in the schema.
4. Write short, factual nutrition notes in {language}.
5. Per ingredient, multiply the per-100g values by (quantity in g / 100), then sum.
6. Round macronutrients to 1 decimal place and vitamins and minerals to whole numbers.
7. If an ingredient is unfamiliar, use realistic values from a similar food.
   Never answer 0 unless that is scientifically justified.

REFERENCE VALUES (per 100g):
- Apple: 52 kcal, 0.3g protein, 14g carbs, 0.2g fat, 2.4g fibre
- Banana: 89 kcal, 1.1g protein, 23g carbs, 0.3g fat, 2.6g fibre
- Chicken breast: 165 kcal, 31g protein, 0g carbs, 3.6g fat
- Cooked rice: 130 kcal, 2.7g protein, 28g carbs, 0.3g fat
- Tomato: 18 kcal, 0.9g protein, 3.9g carbs, 0.2g fat, 1.2g fibre
- Emmental: 402 kcal, 28g protein, 1.3g carbs, 32g fat
- Carrot: 41 kcal, 0.9g protein, 10g carbs, 0.2g fat, 2.8g fibre
- Dark chocolate: 546 kcal, 4.9g protein, 61g carbs, 31g fat
""".strip()


PROMPTS: dict[str, dict[str, str]] = {
    "v1": {"recipes": RECIPES_V1, "nutrition": NUTRITION_V1},
}


def template(version: str, name: str) -> str:
    try:
        return PROMPTS[version][name]
    except KeyError:
        raise ValueError(f"No {name!r} prompt for version {version!r}.") from None


class RecipesPrompt:
    def __init__(
        self,
        request: GenerationRequest,
        *,
        language: str = "French",
        version: str = "v1",
        content: str | None = None,
    ) -> None:
        self.request = request
        self.language = language
        self.content = template(version, "recipes") if content is None else content

    def __str__(self) -> str:
        ingredients = [{"id": i.id, "name": i.name} for i in self.request.ingredients]
        return self.content.format(
            language=self.language,
            intolerances=", ".join(self.request.intolerance_names) or "none",
            servings=f"{self.request.servings:g}",
            ingredients=json.dumps(ingredients, ensure_ascii=False),
        )


class NutritionPrompt:
    def __init__(
        self,
        request: NutritionRequest,
        *,
        language: str = "French",
        version: str = "v1",
        content: str | None = None,
    ) -> None:
        self.request = request
        self.language = language
        self.content = template(version, "nutrition") if content is None else content

    def __str__(self) -> str:
        ingredients = ", ".join(
            f"{i.name}: {i.quantity:g} {i.unit}".rstrip() for i in self.request.ingredients
        )
        return self.content.format(
            language=self.language,
            title=self.request.recipe_title or "Recipe",
            servings=f"{self.request.servings:g}",
            ingredients=ingredients,
        )
