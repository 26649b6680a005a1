"""Errors raised by the pre-registration services.

Each carries a stable ``code`` and the HTTP status the API answers with.
"""

from http import HTTPStatus


class PreRegistrationError(Exception):
    code = "PREREGISTRATION_ERROR"
    status_code = HTTPStatus.BAD_REQUEST
    default_detail = "Pre-registration request failed."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class FormatError(PreRegistrationError):
    code = "INVALID_FORMAT"
    status_code = HTTPStatus.BAD_REQUEST
    default_detail = "The file could not be read as a spreadsheet."


class UnsupportedTypeError(PreRegistrationError):
    code = "UNSUPPORTED_TYPE"
    status_code = HTTPStatus.UNSUPPORTED_MEDIA_TYPE
    default_detail = "Only .xlsx, .xls and .csv files are accepted."


class PayloadTooLargeError(PreRegistrationError):
    code = "PAYLOAD_TOO_LARGE"
    status_code = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
    default_detail = "The file exceeds the maximum upload size."


class MappingError(PreRegistrationError):
    code = "MAPPING_INVALID"
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    default_detail = "The columns of the file could not be mapped."


class ClassifierTimeoutError(PreRegistrationError, TimeoutError):
    code = "CLASSIFIER_TIMEOUT"
    status_code = HTTPStatus.GATEWAY_TIMEOUT
    default_detail = "Column analysis took too long, try again."


class CandidateNotFoundError(PreRegistrationError):
    code = "NOT_FOUND"
    status_code = HTTPStatus.NOT_FOUND
    default_detail = "Pre-registered participant not found."


class AlreadyConvertedError(PreRegistrationError):
    code = "ALREADY_CONVERTED"
    status_code = HTTPStatus.CONFLICT
    default_detail = "This person is already registered."
