# orderdesk/errors.py
"""Failures raised by the order workflows.

Each carries the HTTP status the transport layer answers with, so routes
never translate errors themselves.
"""


class OrderDeskError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidArgument(OrderDeskError):
    status_code = 400


class Unauthorized(OrderDeskError):
    status_code = 401

    def __init__(self, detail: str = "access is denied"):
        super().__init__(detail)


class NotFound(OrderDeskError):
    status_code = 404

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")
        self.resource = resource


class Conflict(OrderDeskError):
    status_code = 409


class InternalError(OrderDeskError):
    status_code = 500

    def __init__(self, detail: str = "some error has occurred"):
        super().__init__(detail)
