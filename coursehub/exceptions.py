"""
Domain errors raised by the services layer.

Each error carries a stable ``kind`` and a human readable message; the HTTP
layer turns them into responses (see ``coursehub.main``).
"""


class CourseHubError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CourseHubError):
    kind = "not_found"
    status_code = 404


class BadRequest(CourseHubError):
    kind = "bad_request"
    status_code = 400


class Forbidden(CourseHubError):
    kind = "forbidden"
    status_code = 403


class Conflict(CourseHubError):
    kind = "conflict"
    status_code = 409


class UpstreamFailure(CourseHubError):
    kind = "upstream_failure"
    status_code = 502
