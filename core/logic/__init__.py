"""
Core Business Logic Package.

Contains business logic that operates on pure data models.

Exports:
    State transitions: can_ingestion_transition, is_ingestion_terminal, entry_state_for
"""

from .transitions import (
    can_ingestion_transition,
    get_ingestion_terminal_states,
    get_ingestion_entry_states,
    is_ingestion_terminal,
    entry_state_for
)

__all__ = [
    'can_ingestion_transition',
    'get_ingestion_terminal_states',
    'get_ingestion_entry_states',
    'is_ingestion_terminal',
    'entry_state_for'
]
