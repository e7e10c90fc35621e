from .base import Base

# Entities
from .program import Program, ProgramStatus
from .cohort import Cohort, CohortStatus
from .mentor import Mentor, MentorStatus, AvailabilityStatus
from .student import Student, StudentNote, StudentStatus, PaymentStatus, NoteAuthorRole

# Relationship table
from .cohort_mentor_link import CohortMentorLink

# Audit
from .audit_log import AuditLog, AuditAction, EntityType
