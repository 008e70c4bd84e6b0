from .errors import error_response, register_error_handlers  # noqa: F401
