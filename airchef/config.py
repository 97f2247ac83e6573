from enum import Enum

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class TableNames(BaseModel):
    ingredients: str = "Ingredients"
    intolerances: str = "Food Intolerances"
    recipes: str = "Recipes"
    recipe_ingredients: str = "Recipe Ingredient Quantity"
    recipe_instructions: str = "Recipe Instructions"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__")

    env: Env = Env.local
    log_level: str = "INFO"

    airtable_api_key: str = ""
    airtable_base_id: str = ""
    airtable_url: str = "https://api.airtable.com/v0/"
    airtable_timeout: float = 20
    tables: TableNames = TableNames()

    openai_api_key: str | None = None
    core_model: str = "gpt-4o-mini"
    nutrition_model: str = "gpt-4o"
    generation_temperature: float = 1.0
    nutrition_temperature: float = 0.1
    # Generation regularly takes 10-20 seconds.
    generation_deadline: float = 60

    recipe_language: str = "French"
    prompt_version: str = "v1"
