"""
Queue exception hierarchy.
"""


class QueueError(Exception):
    """Base class for queue errors."""

    pass


class JobSerializationError(QueueError):
    """A job could not be turned into a payload string."""

    pass


class JobDeserializationError(JobSerializationError):
    """A payload string could not be turned back into a job."""

    def __init__(self, message: str, payload: str | None = None):
        self.payload = payload
        super().__init__(message)


class InvalidJobPayloadError(QueueError):
    """A payload decoded to something that is not a queueable job."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(
            f"Job payload deserialized to {type_name} which does not implement ShouldQueue"
        )


class UnknownQueueError(QueueError):
    """The worker pool has no queue with the given name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown queue: {name}")


class CronRangeError(ValueError):
    """A cron field value is outside its allowed range."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)
