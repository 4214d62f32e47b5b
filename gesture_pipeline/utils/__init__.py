"""Configuration, logging and performance utilities."""
from .config import AppConfig, load_config
from .logger import setup_logging
from .performance import PerformanceMonitor

__all__ = ["AppConfig", "load_config", "setup_logging", "PerformanceMonitor"]
