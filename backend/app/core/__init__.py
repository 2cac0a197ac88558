"""Forecasting core: normalization, timeline folding, prompt projection, streaming ingestion and replay."""
