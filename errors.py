class StudyTrackerError(Exception):
    """Base class for domain errors. The message is shown to the user as-is."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StudyTrackerError):
    pass


class NotFoundError(StudyTrackerError):
    pass


class ConflictError(StudyTrackerError):
    pass


class AlreadyStoppedError(ConflictError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__("Session already stopped")
