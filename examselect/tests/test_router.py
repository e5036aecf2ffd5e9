"""
Tests for the selection HTTP endpoints.
"""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from sqlalchemy.exc import SQLAlchemyError

from examselect.common.config import AppConfig, DatabaseConfig, EnvironmentConfig
from examselect.database.session import Database
from examselect.domain.questions.memory_repository import MemoryCatalogSource, MemoryHistorySource
from examselect.domain.questions.model import Difficulty, QuestionType
from examselect.main import create_app
from examselect.selection.engine import SelectionEngine
from examselect.selection.recorder import InMemoryUsageRecorder
from examselect.selection.types import SelectionRequest
from examselect.tests.conftest import CATEGORY, NOW, REQUESTER, make_item, mixed_pool


@pytest.fixture
def client():
    pool = mixed_pool() + [make_item(f"essay-{i}", question_type=QuestionType.ESSAY) for i in range(3)]
    engine = SelectionEngine(
        MemoryCatalogSource(pool),
        MemoryHistorySource(),
        rng=np.random.default_rng(0),
        clock=lambda: NOW,
    )
    with TestClient(create_app(engine, AppConfig())) as client:
        yield client


def body(**overrides):
    payload = {
        "category_id": CATEGORY,
        "desired_count": 5,
        "overlap_percentage": 10,
        "algorithm": "weighted_random",
        "requester_id": REQUESTER,
    }
    payload.update(overrides)
    return payload


class TestSelect:

    def test_select(self, client):
        response = client.post("/api/selection", json=body())

        assert response.status_code == 200
        data = response.json()
        assert len(data["item_ids"]) == 5
        assert len(set(data["item_ids"])) == 5
        assert data["overlap_used"] == 0
        assert data["algorithm"] == "weighted_random"
        assert data["requester_id"] == REQUESTER

    def test_insufficient_pool_is_conflict(self, client):
        response = client.post("/api/selection", json=body(desired_count=500))
        assert response.status_code == 409

    def test_unknown_algorithm_is_bad_request(self, client):
        response = client.post("/api/selection", json=body(algorithm="fastest"))
        assert response.status_code == 400

    @pytest.mark.parametrize("overrides", [
        {"desired_count": 0},
        {"overlap_percentage": 101},
        {"category_id": ""},
    ])
    def test_invalid_request_is_unprocessable(self, client, overrides):
        response = client.post("/api/selection", json=body(**overrides))
        assert response.status_code == 422


class TestDistribution:

    def test_select_by_distribution(self, client):
        response = client.post(
            "/api/selection/distribution",
            json=body(desired_count=4, distribution={"MULTIPLE_CHOICE": 2, "ESSAY": 2}),
        )

        assert response.status_code == 200
        item_ids = response.json()["item_ids"]
        assert sum(1 for item_id in item_ids if item_id.startswith("essay-")) == 2

    def test_total_mismatch_is_unprocessable(self, client):
        response = client.post(
            "/api/selection/distribution",
            json=body(desired_count=5, distribution={"ESSAY": 2}),
        )
        assert response.status_code == 422

    def test_validate(self, client):
        response = client.post(
            "/api/selection/distribution/validate",
            json={"category_id": CATEGORY, "distribution": {"ESSAY": 3, "MATCHING": 1}},
        )

        assert response.status_code == 200
        report = response.json()
        assert report["is_valid"] is False
        assert report["types"]["ESSAY"] == {"requested": 3, "available": 3, "sufficient": True}
        assert report["missing"][0]["type"] == "MATCHING"

    def test_validate_unknown_type(self, client):
        response = client.post(
            "/api/selection/distribution/validate",
            json={"category_id": CATEGORY, "distribution": {"POETRY": 3}},
        )
        assert response.status_code == 422


def test_statistics(client):
    response = client.get(f"/api/selection/categories/{CATEGORY}/statistics")

    assert response.status_code == 200
    stats = response.json()
    assert stats[Difficulty.EASY.value]["count"] == 10
    assert stats[Difficulty.MEDIUM.value]["count"] == 13
    assert stats[Difficulty.MEDIUM.value]["mean_usage"] == 0.0


def test_supplied_engine_outlives_the_app():
    catalog = MemoryCatalogSource(mixed_pool())
    recorder = InMemoryUsageRecorder(catalog)
    engine = SelectionEngine(catalog, MemoryHistorySource(), recorder, rng=np.random.default_rng(1))

    with TestClient(create_app(engine, AppConfig())) as client:
        assert client.get("/").status_code == 200

    engine.select(SelectionRequest(category_id=CATEGORY, desired_count=3, requester_id=REQUESTER))
    assert engine.dispatcher.drain(timeout=5)
    assert len(recorder.events) == 1
    engine.close()


def sql_config(**environment):
    return AppConfig(
        database=DatabaseConfig(url="sqlite:///:memory:"),
        environment=EnvironmentConfig(**environment),
    )


class TestStartupDatabaseCheck:

    @pytest.fixture
    def pings(self, monkeypatch):
        calls = []

        def unreachable(database):
            calls.append(database)
            raise SQLAlchemyError("connection refused")

        monkeypatch.setattr(Database, "ping", unreachable)
        return calls

    def test_skipped_when_testing(self, pings):
        with TestClient(create_app(config=sql_config(testing=True))) as client:
            assert client.get(f"/api/selection/categories/{CATEGORY}/statistics").json() == {}
        assert pings == []

    def test_tolerated_outside_production(self, pings):
        with TestClient(create_app(config=sql_config(env="development"))) as client:
            assert client.get(f"/api/selection/categories/{CATEGORY}/statistics").status_code == 200
        assert len(pings) == 1

    def test_fatal_in_production(self, pings):
        with pytest.raises(SQLAlchemyError):
            with TestClient(create_app(config=sql_config(env="production"))):
                pass
        assert len(pings) == 1
