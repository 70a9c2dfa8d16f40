"""Quick start script for Return Forecast.

Demonstrates the complete workflow on a synthetic market:
generate -> features -> scaling/sequences/split -> train -> evaluate -> forecast
"""

import torch
from loguru import logger

from return_forecast.config import PipelineConfig, configure_logging
from return_forecast.data import generate_synthetic_series, summarize_series
from return_forecast.pipeline import ForecastPipeline, default_model_factory

# Configuration
DAYS = 750
LOOKBACK = 60
EPOCHS = 10  # Quick demo
FORECAST_DAYS = 5
DEVICE = "cuda" if torch.cuda.is_available() else "cpu"


def main():
    """Run complete demo workflow."""
    configure_logging("INFO")
    logger.info(f"Starting quick demo with {DEVICE}")

    # Step 1: Data
    logger.info("=" * 80)
    logger.info("STEP 1: SYNTHETIC DATA")
    logger.info("=" * 80)

    raw = generate_synthetic_series(days=DAYS, seed=42)
    stats = summarize_series(raw)
    logger.info(f"Generated {stats['total_days']} days, last price {stats['last_price']}")

    # Step 2: Prepare (features, scaling, sequences, split)
    logger.info("=" * 80)
    logger.info("STEP 2: DATA PREPARATION")
    logger.info("=" * 80)

    config = PipelineConfig(lookback=LOOKBACK, epochs=EPOCHS, forecast_days=FORECAST_DAYS)
    pipeline = ForecastPipeline(
        config,
        model_factory=lambda width, cfg: default_model_factory(width, cfg, device=DEVICE),
    )
    prepared = pipeline.prepare(raw)
    logger.info(f"Features: {prepared.feature_names}")
    logger.info(f"Split sizes (train/val/test): {prepared.split.sizes}")

    # Step 3: Train
    logger.info("=" * 80)
    logger.info("STEP 3: MODEL TRAINING")
    logger.info("=" * 80)

    session = pipeline.train(
        prepared,
        progress_callback=lambda r: logger.info(
            f"Epoch {r.epoch}: loss={r.train_loss:.6f}, val_loss={r.val_loss}"
        ),
    )

    # Step 4: Evaluate
    logger.info("=" * 80)
    logger.info("STEP 4: EVALUATION")
    logger.info("=" * 80)

    metrics = pipeline.evaluate(session, prepared)
    for key, value in metrics.items():
        logger.info(f"  {key}: {value:.6f}")

    # Step 5: Forecast
    logger.info("=" * 80)
    logger.info("STEP 5: FORECASTING")
    logger.info("=" * 80)

    for result in pipeline.forecast(session, prepared):
        logger.info(
            f"Day {result.step}: {result.value * 100:+.3f}% (confidence {result.confidence:.0%})"
        )

    # Step 6: Return-only path
    logger.info("=" * 80)
    logger.info("STEP 6: UNIVARIATE FORECAST")
    logger.info("=" * 80)

    univariate = pipeline.prepare_univariate(raw["spx"])
    uni_session = pipeline.train(univariate)
    for result in pipeline.forecast(uni_session, univariate):
        logger.info(f"Day {result.step}: {result.value * 100:+.3f}%")

    logger.info("Demo complete")


if __name__ == "__main__":
    main()
