from .entities import (
    ProgramRead,
    CohortRead,
    MentorRead,
    NoteRead,
    StudentRead,
    AssignmentResult,
    DeleteResult,
    AuditEntryRead,
    AssignmentSelection,
)
from .requests import (
    ProgramCreate,
    CohortCreate,
    MentorCreate,
    MentorCapacityUpdate,
    MentorAvailabilityUpdate,
    StudentCreate,
    StudentMentorUpdate,
    StudentTransfer,
    ProgressUpdate,
    PaymentStatusUpdate,
    NoteCreate,
    StatusUpdate,
    AssignmentRequest,
)
