class StoreAudioError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(StoreAudioError):
    status_code = 400


class Unauthorized(StoreAudioError):
    status_code = 401


class Forbidden(StoreAudioError):
    status_code = 403


class NotFound(StoreAudioError):
    status_code = 404


class ScheduleConflict(StoreAudioError):
    status_code = 409

    def __init__(self, day_of_week: str, start_time: str, end_time: str) -> None:
        super().__init__(
            f"A rule for {day_of_week} already overlaps the range {start_time}-{end_time}."
        )
        self.day_of_week = day_of_week
        self.start_time = start_time
        self.end_time = end_time


class Conflict(StoreAudioError):
    status_code = 409
