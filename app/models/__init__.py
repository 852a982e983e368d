from app.models.coordination import (  # noqa: F401
    Assignment,
    AssignmentRole,
    HistoryAction,
    HistoryEvent,
    Matter,
    MatterLifecycleState,
    Meeting,
    MeetingStatus,
    MeetingType,
    Stage,
    Task,
    TaskPriority,
    TaskStatus,
    TaskTemplate,
)
