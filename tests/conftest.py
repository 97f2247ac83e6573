import copy
import itertools
import json
from typing import Any

import httpx
import openai
import pytest
from starlette.testclient import TestClient

from airchef.airtable import AirtableClient
from airchef.app import create_app
from airchef.config import Config, Env, TableNames
from airchef.llm_service import LLMService


BASE_ID = "appTEST"
TABLES = TableNames()
CREATED_TIME = "2024-05-01T12:00:00.000Z"


def airtable_error(status: int, type: str, message: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"type": type, "message": message}})


class FakeAirtable:
    """Just enough of the Airtable REST API, kept in memory."""

    def __init__(self, *, page_size: int = 100) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {
            name: {} for name in TABLES.model_dump().values()
        }
        self.page_size = page_size
        self.requests: list[httpx.Request] = []
        self.failures: set[tuple[str, str]] = set()
        self._ids = itertools.count(1)

    def add(self, table: str, fields: dict[str, Any], *, id: str | None = None) -> str:
        id = f"rec{next(self._ids):04d}" if id is None else id
        self.tables[table][id] = {
            "id": id,
            "createdTime": CREATED_TIME,
            "fields": copy.deepcopy(fields),
        }
        return id

    def fields(self, table: str) -> list[dict[str, Any]]:
        return [r["fields"] for r in self.tables[table].values()]

    def fail(self, method: str, table: str) -> None:
        self.failures.add((method, table))

    def writes(self) -> list[tuple[str, str]]:
        return [
            (r.method, r.url.path.split("/")[3])
            for r in self.requests
            if r.method != "GET"
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.split("/")[3:]
        table = parts[0]
        record_id = parts[1] if len(parts) > 1 else None

        if (request.method, table) in self.failures:
            return airtable_error(500, "SERVER_ERROR", "Airtable is having a bad day")
        if table not in self.tables:
            return httpx.Response(404, json={"error": "NOT_FOUND"})
        rows = self.tables[table]

        if record_id is not None and request.method != "POST":
            if record_id not in rows:
                return airtable_error(404, "MODEL_ID_NOT_FOUND", "Could not find record")

        match request.method, record_id:
            case "GET", None:
                return httpx.Response(200, json=self._list(rows, request.url.params))
            case "GET", _:
                return httpx.Response(200, json=copy.deepcopy(rows[record_id]))
            case "POST", None:
                body = json.loads(request.content)
                if "records" not in body:
                    return httpx.Response(200, json=self._create(table, body["fields"]))
                if len(body["records"]) > 10:
                    return airtable_error(422, "INVALID_RECORDS", "Too many records")
                created = [self._create(table, r["fields"]) for r in body["records"]]
                return httpx.Response(200, json={"records": created})
            case "PATCH", _:
                body = json.loads(request.content)
                rows[record_id]["fields"].update(copy.deepcopy(body["fields"]))
                return httpx.Response(200, json=copy.deepcopy(rows[record_id]))
            case "DELETE", None:
                ids = request.url.params.get_list("records[]")
                if len(ids) > 10:
                    return airtable_error(422, "INVALID_RECORDS", "Too many records")
                deleted = [{"id": i, "deleted": rows.pop(i, None) is not None} for i in ids]
                self._unlink(ids)
                return httpx.Response(200, json={"records": deleted})
            case "DELETE", _:
                rows.pop(record_id)
                self._unlink([record_id])
                return httpx.Response(200, json={"id": record_id, "deleted": True})
        return airtable_error(405, "METHOD_NOT_ALLOWED", request.method)

    def _unlink(self, ids: list[str]) -> None:
        """Airtable drops a deleted record from every link field pointing at it."""
        for rows in self.tables.values():
            for row in rows.values():
                for name, value in row["fields"].items():
                    if isinstance(value, list):
                        row["fields"][name] = [v for v in value if v not in ids]

    def _create(self, table: str, fields: dict[str, Any]) -> dict[str, Any]:
        id = self.add(table, fields)
        return copy.deepcopy(self.tables[table][id])

    def _list(self, rows: dict[str, dict[str, Any]], params: httpx.QueryParams) -> dict[str, Any]:
        records = [copy.deepcopy(r) for r in rows.values()]
        field = params.get("sort[0][field]")
        if field:
            records.sort(
                key=lambda r: str(r["fields"].get(field) or ""),
                reverse=params.get("sort[0][direction]") == "desc",
            )
        offset = int(params.get("offset", "0"))
        page = {"records": records[offset : offset + self.page_size]}
        if offset + self.page_size < len(records):
            page["offset"] = str(offset + self.page_size)
        return page


def completion(content: str | None) -> dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1714564800,
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "logprobs": None,
                "message": {"role": "assistant", "content": content, "refusal": None},
            }
        ],
    }


class FakeGenerator:
    """Canned chat completions for the OpenAI client."""

    def __init__(self) -> None:
        self.replies: list[httpx.Response] = []
        self.requests: list[dict[str, Any]] = []

    def reply(self, content: str | dict[str, Any] | None) -> None:
        if isinstance(content, dict):
            content = json.dumps(content)
        self.replies.append(httpx.Response(200, json=completion(content)))

    def fail(self, status: int = 500, message: str = "The server had an error") -> None:
        self.replies.append(
            httpx.Response(status, json={"error": {"message": message, "type": "server_error"}})
        )

    @property
    def prompt(self) -> str:
        return self.requests[-1]["messages"][-1]["content"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return self.replies.pop(0)


@pytest.fixture
def airtable() -> FakeAirtable:
    return FakeAirtable()


@pytest.fixture
def store(airtable: FakeAirtable) -> AirtableClient:
    return AirtableClient(
        client=httpx.AsyncClient(
            base_url=f"https://api.airtable.com/v0/{BASE_ID}/",
            transport=httpx.MockTransport(airtable.handler),
        )
    )


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


def openai_client(handler: Any) -> openai.AsyncClient:
    return openai.AsyncClient(
        api_key="sk-test",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def llm(generator: FakeGenerator) -> LLMService:
    return LLMService(openai_client(generator.handler), language="French")


@pytest.fixture
def config() -> Config:
    return Config(
        env=Env.prod,
        airtable_api_key="key",
        airtable_base_id=BASE_ID,
        openai_api_key="sk-test",
    )


@pytest.fixture
def client(config: Config, store: AirtableClient, llm: LLMService) -> TestClient:
    return TestClient(create_app(config, store=store, llm=llm))


@pytest.fixture
def pantry(airtable: FakeAirtable) -> dict[str, str]:
    """Three catalog ingredients, keyed by name."""
    return {
        name: airtable.add(TABLES.ingredients, {"Name": name}, id=id)
        for name, id in (("Pomme", "rec1"), ("Banane", "rec2"), ("Sucre", "recSugar"))
    }


def recipe_json(**overrides: Any) -> dict[str, Any]:
    recipe = {
        "title": "Smoothie pomme-banane",
        "description": "Un smoothie tout doux.",
        "ingredients": [
            {"id": "rec1", "name": "Pomme", "quantity": 1, "unit": "pièce"},
            {"id": "rec2", "name": "Banane", "quantity": 1, "unit": "pièce"},
        ],
        "instructions": [
            {"text": "Éplucher les fruits.", "order": 1},
            {"text": "Mixer le tout.", "order": 2},
        ],
        "servings": 2,
        "prepTimeMinutes": 5,
        "cookTimeMinutes": 0,
    }
    recipe.update(overrides)
    return recipe


def nutrition_json(**overrides: Any) -> dict[str, Any]:
    estimate = {
        "calories": 210.5,
        "protein": 1.8,
        "carbs": 52.0,
        "fat": 0.6,
        "fiber": 6.1,
        "sugar": 38.2,
        "sodium": 2,
        "vitamins": {
            "A": 6, "C": 17, "D": 0, "E": 1, "K": 5, "B1": 0.1,
            "B2": 0.1, "B3": 1, "B6": 0.5, "B12": 0, "folate": 27,
        },
        "minerals": {
            "calcium": 12, "iron": 0.5, "magnesium": 37, "phosphorus": 33,
            "potassium": 530, "zinc": 0.3, "copper": 0.1, "manganese": 0.3,
            "selenium": 1,
        },
        "nutritionNotes": "Riche en fibres et en potassium.",
    }
    estimate.update(overrides)
    return estimate
