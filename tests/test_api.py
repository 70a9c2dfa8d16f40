"""API tests with an injected stub model factory."""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from return_forecast.app_api import create_app
from return_forecast.app_api.schemas import TrainRequest
from return_forecast.app_api.service import ForecastService
from return_forecast.config import Settings

from stubs import DivergingModel, MeanModel, make_raw

SETTINGS = Settings(log_level="WARNING", device="cpu", seed=42)


def mean_factory(width, config):
    return MeanModel(epochs=config.epochs)


@pytest.fixture
def client():
    return TestClient(create_app(model_factory=mean_factory, settings=SETTINGS))


def _series_payload(n=120):
    raw = make_raw(n, with_dates=True)
    return {
        "series": {name: raw[name].tolist() for name in raw.names},
        "dates": [d.strftime("%Y-%m-%d") for d in raw.dates],
    }


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["is_training"] is False
        assert body["has_model"] is False

    def test_root(self, client):
        assert client.get("/").json()["message"] == "Return Forecast API"


class TestBeforeTraining:
    def test_forecast_requires_model(self, client):
        assert client.get("/forecast").status_code == 409

    def test_stats_requires_data(self, client):
        assert client.get("/stats").status_code == 404

    def test_stop_when_idle(self, client):
        assert client.post("/stop").json()["status"] == "idle"

    def test_history_empty(self, client):
        body = client.get("/history").json()
        assert body["epochs"] == []
        assert body["session_id"] is None


class TestTrainAndForecast:
    """Full request cycle; the background task finishes before the response returns."""

    def test_synthetic_run(self, client):
        response = client.post("/train", json={"synthetic_days": 300, "lookback": 20, "epochs": 3})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "started"
        assert body["lookback"] == 20
        assert len(body["feature_names"]) == 12
        assert body["train_size"] + body["val_size"] + body["test_size"] == 300 - 63 - 5 - 20

        history = client.get("/history").json()
        assert [e["epoch"] for e in history["epochs"]] == [1, 2, 3]
        assert history["session_id"] is not None
        assert history["error"] is None

        forecast = client.get("/forecast", params={"days": 3}).json()
        assert forecast["days"] == 3
        assert [p["step"] for p in forecast["predictions"]] == [1, 2, 3]
        assert all(p["date"] is not None for p in forecast["predictions"])
        assert all(0.1 <= p["confidence"] <= 0.95 for p in forecast["predictions"])

        stats = client.get("/stats").json()
        assert stats["summary"]["total_days"] == 300
        assert stats["epochs_completed"] == 3
        assert set(stats["metrics"]) >= {"rmse", "mae", "directional_accuracy"}

    def test_default_forecast_days(self, client):
        client.post("/train", json={**_series_payload(), "lookback": 10, "epochs": 2})
        forecast = client.get("/forecast").json()
        assert forecast["days"] == 5
        # 2024-01-01 plus 120 business days ends on Friday 2024-06-14
        assert forecast["predictions"][0]["date"] == "2024-06-17"

    def test_indicator_options(self, client):
        payload = {
            "synthetic_days": 300,
            "lookback": 20,
            "epochs": 2,
            "horizon": 3,
            "volatility_windows": [10],
            "sma_windows": [5, 20],
            "momentum_window": 5,
            "rsi_window": 7,
            "forecast_days": 4,
        }
        body = client.post("/train", json=payload).json()
        assert len(body["feature_names"]) == 11
        assert {"spx_ret_vol_10", "spx_sma_20", "spx_mom_5", "spx_rsi_7"} <= set(body["feature_names"])
        # warm-up 19 (sma 20), horizon 3
        assert body["train_size"] + body["val_size"] + body["test_size"] == 300 - 19 - 3 - 20
        assert client.get("/forecast").json()["days"] == 4

    def test_invalid_indicator_window(self, client):
        response = client.post("/train", json={"synthetic_days": 300, "sma_windows": [0]})
        assert response.status_code == 422

    def test_univariate_mode(self, client):
        prices = (100 * np.cumprod(1 + 0.01 * np.sin(np.arange(80)))).tolist()
        response = client.post(
            "/train",
            json={"series": {"spx": prices}, "mode": "univariate", "lookback": 5, "epochs": 2},
        )
        assert response.status_code == 200
        assert response.json()["feature_names"] == ["return"]
        assert client.get("/forecast", params={"days": 2}).json()["days"] == 2


class TestErrors:
    def test_missing_signal(self, client):
        payload = _series_payload()
        del payload["series"]["dxy"]
        response = client.post("/train", json=payload)
        assert response.status_code == 400
        assert "dxy" in response.json()["detail"]

    def test_invalid_ratios(self, client):
        response = client.post("/train", json={"synthetic_days": 300, "train_ratio": 0.9, "val_ratio": 0.2})
        assert response.status_code == 400

    def test_training_in_progress(self, client):
        client.app.state.service._pending = True
        response = client.post("/train", json={"synthetic_days": 300, "lookback": 20})
        assert response.status_code == 409
        assert client.post("/stop").json()["status"] == "stopping"

    def test_invalid_days(self, client):
        assert client.get("/forecast", params={"days": 0}).status_code == 422

    def test_failed_training_is_reported(self):
        app = create_app(model_factory=lambda width, config: DivergingModel(), settings=SETTINGS)
        client = TestClient(app)
        client.post("/train", json={"synthetic_days": 300, "lookback": 20})

        history = client.get("/history").json()
        assert "Non-finite loss" in history["error"]
        assert [e["epoch"] for e in history["epochs"]] == [1]
        assert client.get("/health").json()["has_model"] is False
        assert client.get("/forecast").status_code == 409


class TestServiceCancellation:
    """Stop requests against the service outside the HTTP cycle."""

    def _service(self):
        return ForecastService(model_factory=lambda width, config: MeanModel(epochs=5), settings=SETTINGS)

    def test_stop_while_pending_cancels_run(self):
        service = self._service()
        raw = make_raw(120)
        pipeline, prepared = service.begin_training(raw, "multivariate", {"lookback": 10, "epochs": 5})

        assert service.stop() is True
        service.run_training(pipeline, prepared, raw)

        assert service.session.cancelled
        assert service.session.epochs_completed == 1
        assert not service.is_training

    def test_new_run_ignores_earlier_stop(self):
        service = self._service()
        service.orchestrator.cancel()
        raw = make_raw(120)
        pipeline, prepared = service.begin_training(raw, "multivariate", {"lookback": 10})
        service.run_training(pipeline, prepared, raw)

        assert not service.session.cancelled
        assert service.session.epochs_completed == 5


class TestTrainRequest:
    def test_defaults_to_synthetic_without_touching_payload(self):
        payload = {"lookback": 10}
        request = TrainRequest.model_validate(payload)
        assert request.synthetic_days == 750
        assert payload == {"lookback": 10}

    def test_feature_options_are_nested(self):
        request = TrainRequest(horizon=3, sma_windows=[5], forecast_days=7, epochs=2)
        assert request.config_overrides() == {
            "epochs": 2,
            "forecast_days": 7,
            "features": {"horizon": 3, "sma_windows": [5]},
        }

    def test_no_overrides(self):
        assert TrainRequest(synthetic_days=300).config_overrides() == {}
