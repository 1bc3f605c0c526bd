class CaptureUnavailable(Exception):
    """The video source has no usable frame."""


class AttendanceRejected(Exception):
    def __init__(self, detail: str, code: str = "", status_code: int = 0):
        self.detail = detail
        self.code = code
        self.status_code = status_code
        super().__init__(detail)
