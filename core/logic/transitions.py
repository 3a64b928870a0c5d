"""
State Transition Logic for Chunked Ingestion.

Contains business rules for valid controller state transitions.
Separated from the controller for clean architecture.

A run spans many invocations. Each invocation enters at START (first
chunk, first attempt), CONTINUE (a later chunk) or RETRY (a repeated chunk),
moves to PROCESSING and leaves through CONTINUE, RETRY, DONE or FAILED.
An entry state may go straight to DONE when the checkpoint is already past
the last chunk, or to FAILED when the checkpoint is rejected.

Exports:
    can_ingestion_transition: Check if controller state transition is valid
    get_ingestion_terminal_states: Terminal states for a run
    get_ingestion_entry_states: States an invocation can start in
    is_ingestion_terminal: Check if state is terminal
    entry_state_for: Entry state implied by a checkpoint
"""

from typing import List

from ..models.enums import IngestionState


def can_ingestion_transition(current: IngestionState, target: IngestionState) -> bool:
    """
    Check if the controller can transition from current to target state.

    Args:
        current: Current controller state
        target: Target controller state

    Returns:
        True if transition is valid, False otherwise
    """
    transitions = {
        IngestionState.START: [
            IngestionState.PROCESSING,
            IngestionState.DONE,
            IngestionState.FAILED
        ],
        IngestionState.PROCESSING: [
            IngestionState.CONTINUE,
            IngestionState.RETRY,
            IngestionState.DONE,
            IngestionState.FAILED
        ],
        IngestionState.CONTINUE: [
            IngestionState.PROCESSING,
            IngestionState.DONE,
            IngestionState.FAILED
        ],
        IngestionState.RETRY: [
            IngestionState.PROCESSING,
            IngestionState.DONE,
            IngestionState.FAILED
        ],
        IngestionState.DONE: [],  # Terminal state
        IngestionState.FAILED: []  # Terminal state
    }

    return target in transitions.get(current, [])


def get_ingestion_terminal_states() -> List[IngestionState]:
    """
    Get list of terminal states for an ingestion run.

    Returns:
        List of terminal controller states
    """
    return [
        IngestionState.DONE,
        IngestionState.FAILED
    ]


def get_ingestion_entry_states() -> List[IngestionState]:
    """
    Get list of states an invocation can start in.

    Returns:
        List of entry controller states
    """
    return [
        IngestionState.START,
        IngestionState.CONTINUE,
        IngestionState.RETRY
    ]


def is_ingestion_terminal(state: IngestionState) -> bool:
    """
    Check if a controller state is terminal.

    Args:
        state: Controller state to check

    Returns:
        True if state is terminal, False otherwise
    """
    return state in get_ingestion_terminal_states()


def entry_state_for(current_chunk_index: int, retry_count: int) -> IngestionState:
    """
    Entry state implied by a checkpoint.

    retry_count > 0 means the chunk is being repeated; a first attempt at
    chunk 0 is the start of the run; anything else is a continuation.
    """
    if retry_count > 0:
        return IngestionState.RETRY
    if current_chunk_index == 0:
        return IngestionState.START
    return IngestionState.CONTINUE
