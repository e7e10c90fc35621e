from .base import LifecycleStateMachine
from .program_state import ProgramStateMachine
from .cohort_state import CohortStateMachine
from .mentor_state import MentorStateMachine
from .student_state import StudentStateMachine
