"""Tests for the prediction service."""

import pytest
from fastapi.testclient import TestClient

from claim_frequency.errors import NotFound
from claim_frequency.registry.infra import ArtifactVersion
from claim_frequency.registry.store import ArtifactStore
from claim_frequency.serving.app import create_app
from claim_frequency.serving.startup import build_service


class CountingStore(ArtifactStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fetches = 0

    def fetch(self, name=None, version=None):
        self.fetches += 1
        return super().fetch(name, version)


@pytest.fixture
def client(small_bundle):
    artifact = ArtifactVersion(name="claim_frequency_glm", version=4, created_at=small_bundle.created_at, commit="abc123")
    return TestClient(create_app(small_bundle, artifact=artifact))


class TestPredictEndpoint:
    """Tests for POST /predict."""

    def test_single_row(self, client, small_bundle):
        rows = [{"area": "A", "vehicle_power": 5, "exposure": 0.5}]
        r = client.post("/predict", json=rows)
        assert r.status_code == 200
        body = r.json()
        assert len(body) == 1
        assert body[0] >= 0
        assert body == pytest.approx(small_bundle.predict(rows))

    def test_batch_keeps_order(self, client, small_bundle):
        rows = [{"area": a, "vehicle_power": p, "exposure": 0.9} for a in "EDCBA" for p in (4, 12)]
        r = client.post("/predict", json=rows)
        assert r.status_code == 200
        assert r.json() == pytest.approx(small_bundle.predict(rows))

    def test_empty_batch(self, client):
        r = client.post("/predict", json=[])
        assert r.status_code == 200
        assert r.json() == []

    def test_missing_column(self, client):
        r = client.post("/predict", json=[{"area": "A", "exposure": 0.5}])
        assert r.status_code == 422
        body = r.json()
        assert body["error"] == "SchemaMismatch"
        assert "vehicle_power" in body["detail"]

    def test_bad_value(self, client):
        r = client.post("/predict", json=[{"area": "A", "vehicle_power": "many", "exposure": 0.5}])
        assert r.status_code == 422
        assert r.json()["error"] == "TransformError"

    def test_non_positive_exposure(self, client):
        r = client.post("/predict", json=[{"area": "A", "vehicle_power": 5, "exposure": 0}])
        assert r.status_code == 422
        assert r.json()["error"] == "TransformError"

    def test_extreme_value_is_rejected(self, client):
        r = client.post("/predict", json=[
            {"area": "A", "vehicle_power": 1e300, "exposure": 0.5},
            {"area": "A", "vehicle_power": -1e300, "exposure": 0.5},
        ])
        assert r.status_code == 422
        assert r.json()["error"] == "TransformError"

    def test_non_scalar_category_is_rejected(self, client):
        r = client.post("/predict", json=[{"area": ["A"], "vehicle_power": 5, "exposure": 0.5}])
        assert r.status_code == 422
        assert r.json()["error"] == "TransformError"

    @pytest.mark.parametrize("payload", [{"area": "A"}, "rows", [1, 2, 3]])
    def test_malformed_body(self, client, payload):
        r = client.post("/predict", json=payload)
        assert r.status_code == 400
        assert r.json()["error"] == "MalformedRequest"

    def test_invalid_json(self, client):
        r = client.post("/predict", content=b"[{", headers={"content-type": "application/json"})
        assert r.status_code == 400


class TestHealth:
    def test_reports_loaded_artifact(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["name"] == "claim_frequency_glm"
        assert body["version"] == 4
        assert body["commit"] == "abc123"
        assert body["predictors"] == ["area", "vehicle_power"]
        assert body["exposure_col"] == "exposure"


class TestStartup:
    """Tests for loading the bundle at service start."""

    def test_fetches_once(self, store_config, hub, small_bundle):
        store = CountingStore(store_config, api=hub)
        store.publish(small_bundle)

        app = build_service(store_config, store=store)
        client = TestClient(app)
        rows = [{"area": "C", "vehicle_power": 7, "exposure": 1.0}]
        for _ in range(5):
            assert client.post("/predict", json=rows).status_code == 200
        assert client.get("/health").json()["version"] == 1
        assert store.fetches == 1

    def test_pinned_version(self, store_config, hub, small_bundle, bundle):
        store = ArtifactStore(store_config, api=hub)
        store.publish(small_bundle)
        store.publish(bundle)

        app = build_service(store_config, store=store, version=1)
        assert app.state.artifact.version == 1
        assert app.state.bundle.predictors == small_bundle.predictors

    def test_refuses_to_start_without_artifact(self, store_config, hub):
        store = ArtifactStore(store_config, api=hub)
        with pytest.raises(NotFound):
            build_service(store_config, store=store)
