"""Configuration and process-wide setup."""

from .settings import LoopTiming, Settings, SourceNoncePolicy, load_settings

__all__ = ["LoopTiming", "Settings", "SourceNoncePolicy", "load_settings"]
