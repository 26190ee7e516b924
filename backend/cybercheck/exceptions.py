"""
Check-in error taxonomy

Rejected or suspicious check-ins are ordinary decisions, not exceptions.
These cover failures of the system itself.
"""


class CheckinError(Exception):
    """Base class for system-level check-in failures"""


class AttendancePersistenceError(CheckinError):
    """The attendance record could not be written"""


class LessonNotFoundError(CheckinError):
    pass
