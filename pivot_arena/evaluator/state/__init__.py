from .clock import ClockState, reset_clock_state
from .model_state import ModelState, ModelStateManager

__all__ = ["ClockState", "reset_clock_state", "ModelState", "ModelStateManager"]
