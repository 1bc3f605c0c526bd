from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class Unauthorized(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized"
    default_code = "unauthorized"


class InvalidFaceData(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Face data is missing or invalid. Please retry the face detection."
    default_code = "invalid_face_data"


class DuplicateAttendance(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Attendance has already been recorded today."
    default_code = "duplicate_attendance"


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None and isinstance(exc, APIException) and isinstance(response.data, dict):
        codes = exc.get_codes()
        if isinstance(codes, str):
            response.data.setdefault("code", codes)
    return response
