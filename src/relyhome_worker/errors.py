"""Failure taxonomy shared by the automation pipelines and the API layer."""

from __future__ import annotations

from enum import Enum


class AutomationFailure(RuntimeError):
    """Base error for anything that stops a pipeline run."""

    status_code = 500


class LoginFailureReason(str, Enum):
    FORM_NOT_FOUND = "form_not_found"
    FIELDS_NOT_FOUND = "fields_not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    STILL_ON_LOGIN_PAGE = "still_on_login_page"


class LoginError(AutomationFailure):
    """Raised when the login state machine terminates in ``FAILED``."""

    reason: LoginFailureReason


class FormNotFound(LoginError):
    reason = LoginFailureReason.FORM_NOT_FOUND


class FieldsNotFound(LoginError):
    reason = LoginFailureReason.FIELDS_NOT_FOUND


class InvalidCredentials(LoginError):
    reason = LoginFailureReason.INVALID_CREDENTIALS


class StillOnLoginPage(LoginError):
    reason = LoginFailureReason.STILL_ON_LOGIN_PAGE


class NoSlotsFound(AutomationFailure):
    pass


class SubmitButtonNotFound(AutomationFailure):
    pass


class NoCredentialsConfigured(AutomationFailure):
    pass


class SessionExpiredNoCredentials(AutomationFailure):
    pass


class RedirectedToLogin(AutomationFailure):
    pass


class Unauthorized(AutomationFailure):
    status_code = 401


class MissingUrl(AutomationFailure):
    status_code = 400


class MissingCredentials(AutomationFailure):
    status_code = 400


LOGIN_ERRORS: dict[LoginFailureReason, type[LoginError]] = {
    LoginFailureReason.FORM_NOT_FOUND: FormNotFound,
    LoginFailureReason.FIELDS_NOT_FOUND: FieldsNotFound,
    LoginFailureReason.INVALID_CREDENTIALS: InvalidCredentials,
    LoginFailureReason.STILL_ON_LOGIN_PAGE: StillOnLoginPage,
}
