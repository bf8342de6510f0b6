from .settings import PhaseSchedule, RunSettings, load_settings

__all__ = [
    "PhaseSchedule",
    "RunSettings",
    "load_settings",
]
