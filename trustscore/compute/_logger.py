"""Shared structlog logger for the compute layer."""
import structlog

logger = structlog.get_logger("trustscore.compute")
