import asyncio
import logging
from typing import Any, Self

import openai
import pydantic
from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam,
)

from airchef.config import Config
from airchef.errors import GenerationError
from airchef.prompts import SYSTEM_PROMPT, NutritionPrompt, RecipesPrompt
from airchef.schemas import (
    GeneratedRecipes,
    GenerationRequest,
    NutritionEstimate,
    NutritionRequest,
    parse_request,
    validation_message,
)


logger = logging.getLogger(__name__)


def recipes_schema(request: GenerationRequest) -> dict[str, Any]:
    """The generated-recipes JSON schema, narrowed to this request.

    Ingredient ids may only be the ones offered and servings must echo the
    request.
    """
    schema = GeneratedRecipes.model_json_schema(by_alias=True)
    defs = schema["$defs"]
    defs["GeneratedIngredient"]["properties"]["id"]["enum"] = [
        i.id for i in request.ingredients
    ]
    defs["GeneratedRecipe"]["properties"]["servings"]["const"] = request.servings
    return schema


class LLMService:
    @classmethod
    def from_config(cls, config: Config) -> Self:
        return cls(
            openai_client=openai.AsyncClient(api_key=config.openai_api_key),
            model=config.core_model,
            nutrition_model=config.nutrition_model,
            temperature=config.generation_temperature,
            nutrition_temperature=config.nutrition_temperature,
            deadline=config.generation_deadline,
            language=config.recipe_language,
            prompt_version=config.prompt_version,
        )

    def __init__(
        self,
        openai_client: openai.AsyncClient | None = None,
        *,
        model: str = "gpt-4o-mini",
        nutrition_model: str = "gpt-4o",
        temperature: float = 1.0,
        nutrition_temperature: float = 0.1,
        deadline: float = 60,
        language: str = "French",
        prompt_version: str = "v1",
    ) -> None:
        self.openai_client = (
            openai.AsyncClient() if openai_client is None else openai_client
        )
        self.model = model
        self.nutrition_model = nutrition_model
        self.temperature = temperature
        self.nutrition_temperature = nutrition_temperature
        self.deadline = deadline
        self.language = language
        self.prompt_version = prompt_version

    async def close(self) -> None:
        await self.openai_client.close()

    async def structured(
        self,
        prompt: str,
        *,
        name: str,
        schema: dict[str, Any],
        model: str,
        temperature: float,
    ) -> str:
        """One chat completion constrained to ``schema``. Returns the raw JSON."""
        system_message: ChatCompletionSystemMessageParam = {
            "role": "system",
            "content": SYSTEM_PROMPT,
        }
        user_message: ChatCompletionUserMessageParam = {
            "role": "user",
            "content": prompt,
        }
        messages: list[ChatCompletionMessageParam] = [system_message, user_message]

        try:
            async with asyncio.timeout(self.deadline):
                resp = await self.openai_client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=temperature,
                    response_format={
                        "type": "json_schema",
                        "json_schema": {"name": name, "schema": schema},
                    },
                )
        except TimeoutError as e:
            logger.error("%s generation took longer than %ss", name, self.deadline)
            raise GenerationError(
                f"The generator did not answer within {self.deadline:g} seconds.",
                cause=e,
            ) from e
        except openai.OpenAIError as e:
            logger.error("%s generation failed: %r", name, e)
            raise GenerationError(f"The generator failed: {e}", cause=e) from e

        if not resp.choices:
            raise GenerationError("The generator returned no answer.")
        content = resp.choices[0].message.content
        if not content:
            refusal = resp.choices[0].message.refusal
            raise GenerationError(f"The generator returned no content. {refusal or ''}".strip())
        return content

    async def generate_recipes(
        self,
        request: GenerationRequest | dict[str, Any],
    ) -> GeneratedRecipes:
        request = parse_request(GenerationRequest, request)
        prompt = RecipesPrompt(
            request, language=self.language, version=self.prompt_version
        )
        logger.info(
            "Generating recipes from %d ingredients for %g servings",
            len(request.ingredients),
            request.servings,
        )
        content = await self.structured(
            str(prompt),
            name="recipes",
            schema=recipes_schema(request),
            model=self.model,
            temperature=self.temperature,
        )

        try:
            recipes = GeneratedRecipes.model_validate_json(
                content,
                context={
                    "ingredients": request.ingredient_names,
                    "servings": request.servings,
                },
            )
        except pydantic.ValidationError as e:
            logger.warning("Generated recipes broke the schema: %s", validation_message(e))
            raise GenerationError(
                f"The generated recipes did not match the schema: {validation_message(e)}",
                cause=e,
            ) from e

        logger.info("Generated %d recipes", len(recipes.recipes))
        return recipes

    async def analyze_nutrition(
        self,
        request: NutritionRequest | dict[str, Any],
    ) -> NutritionEstimate:
        request = parse_request(NutritionRequest, request)
        prompt = NutritionPrompt(
            request, language=self.language, version=self.prompt_version
        )
        content = await self.structured(
            str(prompt),
            name="nutrition",
            schema=NutritionEstimate.model_json_schema(by_alias=True),
            model=self.nutrition_model,
            temperature=self.nutrition_temperature,
        )

        try:
            return NutritionEstimate.model_validate_json(content)
        except pydantic.ValidationError as e:
            logger.warning("Nutrition estimate broke the schema: %s", validation_message(e))
            raise GenerationError(
                f"The nutrition estimate did not match the schema: {validation_message(e)}",
                cause=e,
            ) from e
