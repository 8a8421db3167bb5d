from __future__ import annotations


class LokiError(Exception):
    pass


class DeliveryError(LokiError):
    """A push did not reach Loki or Loki rejected it.

    Exactly one of ``status_code`` (the server answered with a non-2xx
    status, ``body`` holds its response verbatim) or ``error`` (the request
    failed in transport) is set.
    """

    def __init__(
        self,
        status_code: int | None = None,
        body: str = "",
        error: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.error = error
        if error is not None:
            message = f"Unable to send request to Loki: {error}"
        else:
            message = (
                f"Unable to send request to Loki! Status {status_code} - {body}"
            )
        super().__init__(message)
