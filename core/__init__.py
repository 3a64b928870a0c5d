"""
Core Ingestion Components.

Structure:
    models/: Pure data structures (no business logic)
    logic/: State transition rules
    errors.py: Error codes and retry classification
    ingest_machine.py: Chunked ingestion controller
    fan_in.py: Message fan-in dispatcher

Exports:
    ChunkedIngestionController: Resumable chunked ingestion state machine
    FanInDispatcher: Multi-shape message resolution and bulk load
"""

from . import models
from . import logic

# Lazy imports to avoid circular dependencies with services/infrastructure
_LAZY_IMPORTS = {
    'ChunkedIngestionController': '.ingest_machine',
    'FanInDispatcher': '.fan_in',
}


def __getattr__(name):
    """Lazy import core classes to avoid circular dependencies."""
    if name in _LAZY_IMPORTS:
        from importlib import import_module
        module = import_module(_LAZY_IMPORTS[name], package='core')
        return getattr(module, name)
    raise AttributeError(f"module 'core' has no attribute '{name}'")


__all__ = [
    'ChunkedIngestionController',
    'FanInDispatcher',
    'models',
    'logic'
]
