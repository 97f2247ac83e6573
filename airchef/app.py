import contextlib
import functools
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from pydantic import BaseModel
from rich.logging import RichHandler
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from airchef import config
from airchef.airtable import AirtableClient
from airchef.catalog import IngredientCatalog, IntoleranceCatalog
from airchef.errors import AirchefError, ErrorKind, ValidationError
from airchef.llm_service import LLMService
from airchef.repository import RecipeRepository
from airchef.schemas import (
    DeleteRecipeRequest,
    GenerationRequest,
    IngredientIn,
    IntoleranceIn,
    IntoleranceUpdate,
    NutritionRequest,
    SaveRecipeRequest,
    parse_request,
)
from airchef.services import delete_recipe, save_recipe


logger = logging.getLogger(__name__)


def configure_logging(conf: config.Config) -> None:
    if conf.env == config.Env.local:
        handler: logging.Handler = RichHandler(rich_tracebacks=True)
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    logging.basicConfig(level=conf.log_level, format=fmt, handlers=[handler], force=True)


def jsonable(payload: Any) -> Any:
    if hasattr(payload, "to_dict"):
        return payload.to_dict()
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    if isinstance(payload, (list, tuple)):
        return [jsonable(p) for p in payload]
    return payload


def aJSONResponse(route: Callable[..., Awaitable[Any]]):
    """Render whatever the route returns as JSON and every failure as
    ``{"error": ..., "kind": ...}``."""

    @functools.wraps(route)
    async def wrapper(request: Request) -> JSONResponse:
        try:
            resp = await route(request)
        except AirchefError as e:
            return JSONResponse(e.to_dict(), status_code=e.status_code)
        except Exception:
            logger.exception("%s %s failed", request.method, request.url.path)
            return JSONResponse(
                {"error": "Unknown error", "kind": ErrorKind.upstream.value},
                status_code=500,
            )
        if isinstance(resp, tuple):
            payload, code = resp
        else:
            payload, code = resp, 200
        return JSONResponse(jsonable(payload), status_code=code)

    return wrapper


async def read_body[T: BaseModel](request: Request, model: type[T]) -> T:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("The request body must be JSON.") from e
    return parse_request(model, data)


def query_id(request: Request) -> str:
    id = request.query_params.get("id", "").strip()
    if not id:
        raise ValidationError("ID is required")
    return id


def app_config(request: Request) -> config.Config:
    return request.app.state.config


def ingredient_catalog(request: Request) -> IngredientCatalog:
    return IngredientCatalog(
        request.app.state.store, table=app_config(request).tables.ingredients
    )


def intolerance_catalog(request: Request) -> IntoleranceCatalog:
    return IntoleranceCatalog(
        request.app.state.store, table=app_config(request).tables.intolerances
    )


def recipe_repository(request: Request) -> RecipeRepository:
    return RecipeRepository(request.app.state.store, tables=app_config(request).tables)


@aJSONResponse
async def ingredients(request: Request) -> Any:
    catalog = ingredient_catalog(request)
    match request.method.lower():
        case "get":
            return await catalog.all()
        case "post":
            body = await read_body(request, IngredientIn)
            return await catalog.find_or_create(body.name)
        case "patch":
            id = query_id(request)
            body = await read_body(request, IngredientIn)
            return await catalog.rename(id, body.name)
        case "delete":
            await catalog.delete(query_id(request))
            return {"success": True}
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def intolerances(request: Request) -> Any:
    catalog = intolerance_catalog(request)
    match request.method.lower():
        case "get":
            return await catalog.all()
        case "post":
            body = await read_body(request, IntoleranceIn)
            return await catalog.create(body)
        case "patch":
            id = query_id(request)
            body = await read_body(request, IntoleranceUpdate)
            return await catalog.update(id, body)
        case "delete":
            await catalog.delete(query_id(request))
            return {"success": True}
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def recipes(request: Request) -> Any:
    match request.method.lower():
        case "get":
            return await recipe_repository(request).list()
        case "post":
            body = await read_body(request, GenerationRequest)
            llm: LLMService = request.app.state.llm
            return await llm.generate_recipes(body)
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def recipe_detail(request: Request) -> Any:
    id = request.path_params["id"]
    return await recipe_repository(request).get(id)


@aJSONResponse
async def recipe_save(request: Request) -> Any:
    body = await read_body(request, SaveRecipeRequest)
    return await save_recipe(
        body.recipe,
        store=request.app.state.store,
        tables=app_config(request).tables,
        intolerances=body.intolerances,
    )


@aJSONResponse
async def recipe_delete(request: Request) -> Any:
    body = await read_body(request, DeleteRecipeRequest)
    await delete_recipe(
        body.recipe_id,
        store=request.app.state.store,
        tables=app_config(request).tables,
    )
    return {"success": True}


@aJSONResponse
async def analyze_nutrition(request: Request) -> Any:
    body = await read_body(request, NutritionRequest)
    llm: LLMService = request.app.state.llm
    return await llm.analyze_nutrition(body)


def create_app(
    conf: config.Config | None = None,
    *,
    store: AirtableClient | None = None,
    llm: LLMService | None = None,
) -> Starlette:
    conf = config.Config() if conf is None else conf

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        configure_logging(conf)
        async with contextlib.AsyncExitStack() as stack:
            if store is None:
                app.state.store = AirtableClient.from_config(conf)
                stack.push_async_callback(app.state.store.close)
            if llm is None:
                app.state.llm = LLMService.from_config(conf)
                stack.push_async_callback(app.state.llm.close)
            yield

    app = Starlette(
        debug=conf.env == config.Env.local,
        routes=[
            Route("/ingredients", ingredients, methods=["GET", "POST", "PATCH", "DELETE"]),
            Route("/intolerances", intolerances, methods=["GET", "POST", "PATCH", "DELETE"]),
            Route("/recipes", recipes, methods=["GET", "POST"]),
            Route("/recipes/save", recipe_save, methods=["POST"]),
            Route("/recipes/delete", recipe_delete, methods=["DELETE"]),
            Route("/recipes/analyze-nutrition", analyze_nutrition, methods=["POST"]),
            Route("/recipes/{id}", recipe_detail, methods=["GET"]),
        ],
        lifespan=lifespan,
    )
    app.state.config = conf
    if store is not None:
        app.state.store = store
    if llm is not None:
        app.state.llm = llm
    return app


app = create_app()
