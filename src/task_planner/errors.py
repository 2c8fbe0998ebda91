class PlannerError(Exception):
    """Base class for collaborator failures surfaced to API callers."""


class BreakdownError(PlannerError):
    """The AI breakdown call failed or returned something unusable."""


class OCRError(PlannerError):
    """Text could not be extracted from the uploaded image."""


class CalendarNotConnected(PlannerError):
    """No Google Calendar credentials are available."""


class TaskNotFound(PlannerError):
    """No stored task has the requested id."""
