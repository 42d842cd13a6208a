from __future__ import annotations

from .catalog import BUILTIN_PATTERNS
from .collection import PatternCollection
from .config import AppConfig
from .deck import Deck, PatternGenerator
from .errors import (
    CollaboratorError,
    EvaluationError,
    InvalidInputError,
    StrudelBopError,
)
from .grid import (
    StepGrid,
    encode_grid,
    is_grid_editable,
    resize_grid,
    try_decode_grid,
)
from .logging_utils import configure_logging as _configure_logging
from .media import MediaService
from .params import PARAM_SPECS, ExtractedParam, ParamSpec, extract_params, rewrite_param
from .program import SILENCE_PROGRAM, combine_program, split_tempo_directive
from .runtime import EvaluationRuntime, RecordingRuntime
from .session import (
    OperationResult,
    SessionContext,
    SessionEngine,
    SessionEvent,
    SessionHooks,
)
from .store import PatternStore
from .tempo import TempoController
from .tracks import PatternRecord, TrackSettings, build_track_code

__all__ = [
    "BUILTIN_PATTERNS",
    "PARAM_SPECS",
    "SILENCE_PROGRAM",
    "AppConfig",
    "CollaboratorError",
    "Deck",
    "EvaluationError",
    "EvaluationRuntime",
    "ExtractedParam",
    "InvalidInputError",
    "MediaService",
    "OperationResult",
    "ParamSpec",
    "PatternCollection",
    "PatternGenerator",
    "PatternRecord",
    "PatternStore",
    "RecordingRuntime",
    "SessionContext",
    "SessionEngine",
    "SessionEvent",
    "SessionHooks",
    "StepGrid",
    "StrudelBopError",
    "TempoController",
    "TrackSettings",
    "build_track_code",
    "combine_program",
    "encode_grid",
    "extract_params",
    "is_grid_editable",
    "resize_grid",
    "rewrite_param",
    "split_tempo_directive",
    "try_decode_grid",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
