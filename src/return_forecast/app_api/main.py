"""
FastAPI application for return forecasting.

Provides REST API for training, progress, cancellation, forecasting and
dataset statistics.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import ValidationError

from return_forecast import __version__
from return_forecast.config import PipelineConfig, Settings, configure_logging
from return_forecast.errors import (
    ForecastError,
    ModelNotTrainedError,
    TrainingInProgressError,
)
from return_forecast.pipeline import ModelFactory

from .schemas import (
    EpochLoss,
    ForecastResponse,
    HealthResponse,
    HistoryResponse,
    PredictionItem,
    StatsResponse,
    StopResponse,
    TrainRequest,
    TrainResponse,
)
from .service import ForecastService


def _to_http(e: ForecastError) -> HTTPException:
    if isinstance(e, (TrainingInProgressError, ModelNotTrainedError)):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _service(request: Request) -> ForecastService:
    return request.app.state.service


def create_app(
    config: Optional[PipelineConfig] = None,
    model_factory: Optional[ModelFactory] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the API around a fresh ForecastService.

    Args:
        config: Base pipeline options; request fields override them per run
        model_factory: Builds the trainable model for a run (defaults to the bundled GRU)
        settings: Process settings (defaults to the environment)
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Return Forecast API",
        description="GRU forecasting of short-horizon market returns",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service = ForecastService(config=config, model_factory=model_factory, settings=settings)
    logger.info(f"API initialized with device: {settings.device}")

    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint."""
        return {
            "message": "Return Forecast API",
            "version": __version__,
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        service = _service(request)
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            is_training=service.is_training,
            has_model=service.has_model,
        )

    @app.post("/train", response_model=TrainResponse, tags=["Training"])
    async def train_model(body: TrainRequest, request: Request, background_tasks: BackgroundTasks):
        """
        Start a training session.

        Data is validated and windowed before the response; the epochs run
        as a background task. Poll /history for progress.
        """
        service = _service(request)
        try:
            raw = service.load_series(body)
            pipeline, prepared = service.begin_training(raw, body.mode, body.config_overrides())
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except ForecastError as e:
            logger.warning(f"Rejected training request: {e}")
            raise _to_http(e)

        background_tasks.add_task(service.run_training, pipeline, prepared, raw)

        train_size, val_size, test_size = prepared.split.sizes
        return TrainResponse(
            status="started",
            message=f"Training on {len(prepared.sequences)} sequences",
            mode=body.mode,
            lookback=prepared.lookback,
            epochs=pipeline.config.epochs,
            feature_names=prepared.feature_names,
            train_size=train_size,
            val_size=val_size,
            test_size=test_size,
        )

    @app.post("/stop", response_model=StopResponse, tags=["Training"])
    async def stop_training(request: Request):
        """Stop the running session after its current epoch."""
        if _service(request).stop():
            return StopResponse(status="stopping", message="Training will stop after the current epoch")
        return StopResponse(status="idle", message="No training in progress")

    @app.get("/history", response_model=HistoryResponse, tags=["Training"])
    async def training_history(request: Request):
        """Epoch losses of the running or most recent session."""
        service = _service(request)
        session = service.session
        return HistoryResponse(
            is_training=service.is_training,
            session_id=session.session_id if session is not None else None,
            cancelled=session.cancelled if session is not None else False,
            error=service.last_error,
            epochs=[
                EpochLoss(epoch=r.epoch, train_loss=r.train_loss, val_loss=r.val_loss)
                for r in service.history()
            ],
        )

    @app.get("/forecast", response_model=ForecastResponse, tags=["Forecasting"])
    async def forecast(request: Request, days: Optional[int] = Query(None, ge=1, le=60)):
        """Recursive forecast for the next ``days`` trading days."""
        try:
            session, results, dates = _service(request).forecast(days)
        except ForecastError as e:
            raise _to_http(e)
        except Exception as e:
            logger.exception(f"Error in forecast endpoint: {e}")
            raise HTTPException(status_code=500, detail=f"Forecast generation failed: {e}")

        return ForecastResponse(
            session_id=session.session_id,
            days=len(results),
            predictions=[
                PredictionItem(
                    step=r.step,
                    date=dates[i] if dates else None,
                    value=r.value,
                    normalized=r.normalized,
                    confidence=r.confidence,
                )
                for i, r in enumerate(results)
            ],
        )

    @app.get("/stats", response_model=StatsResponse, tags=["Data"])
    async def stats(request: Request):
        """Summary of the loaded data and held-out metrics of the current model."""
        service = _service(request)
        try:
            summary = service.stats()
        except ForecastError as e:
            raise _to_http(e)
        if summary is None:
            raise HTTPException(status_code=404, detail="No data loaded")

        session = service.session
        return StatsResponse(
            summary=summary,
            session_id=session.session_id if session is not None else None,
            epochs_completed=session.epochs_completed if session is not None else 0,
            metrics=service.metrics,
        )

    return app
