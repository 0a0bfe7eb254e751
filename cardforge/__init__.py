"""cardforge generation engine exposing the controller and its collaborators."""

from .controller import GenerateOptions, GenerationConfig, GenerationController
from .errors import (
    ErrorCode,
    GenerationCancelledError,
    GenerationError,
    GenerationFailedError,
    InputValidationError,
)
from .progress import Milestone, ProgressConfig, ProgressSimulator
from .session import GenerationSession
from .transport import LiveTransport, SimulatedTransport, TutorialConfig

__all__ = [
    "ErrorCode",
    "GenerateOptions",
    "GenerationCancelledError",
    "GenerationConfig",
    "GenerationController",
    "GenerationError",
    "GenerationFailedError",
    "GenerationSession",
    "InputValidationError",
    "LiveTransport",
    "Milestone",
    "ProgressConfig",
    "ProgressSimulator",
    "SimulatedTransport",
    "TutorialConfig",
]
