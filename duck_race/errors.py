class RaceControlError(Exception):
    """A control command was refused. The message is safe to show to users."""

    code = "race_control_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TooFewEntrantsError(RaceControlError):
    code = "too_few_entrants"


class TooManyEntrantsError(RaceControlError):
    code = "too_many_entrants"


class DurationOutOfRangeError(RaceControlError):
    code = "duration_out_of_range"


class RaceAlreadyRunningError(RaceControlError):
    code = "race_already_running"


class SchedulerStartError(RaceControlError):
    code = "scheduler_start_failed"
