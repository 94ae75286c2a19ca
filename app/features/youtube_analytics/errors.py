"""
Exceptions raised across the YouTube analytics feature.
"""


class YouTubeApiError(Exception):
    """A Data, Reporting or Analytics API call returned an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.response_data = response_data or {}


class RefreshJobError(Exception):
    """A refresh run could not complete; the message is stored on the job."""


class InvalidJobTransition(RefreshJobError):
    def __init__(self, job_id: str, current: str, target: str):
        super().__init__(f"Refresh job {job_id} cannot move from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target


class RefreshTimeoutError(TimeoutError):
    """The poller gave up before the job reached a terminal state."""

    def __init__(self, job_id: str, timeout_s: float):
        super().__init__(f"Timed out waiting for refresh job {job_id} after {timeout_s:.0f}s")
        self.job_id = job_id
        self.timeout_s = timeout_s
