"""
WSGI middleware for signing and verifying requests.

Signer.sign_to_proxy() is for a trusted proxy that adds a signature header
before forwarding a request. Verifier.verify() is for the receiving service:
it checks the header and responds 400 if it is invalid, otherwise it calls
the wrapped application.

Both parties must agree on the header name, the shared key and the value
returned by get_value.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Union

from httpsign import httpsign
from httpsign.context import LogHook, SigningContext
from httpsign.httpsign import (
    MalformedHeader,
    SignatureError,
    check_signature,
    check_timestamp,
    compute_signature,
    form_header,
    parse_header,
)

logger = logging.getLogger(__name__)

WSGIApp = Callable[[Dict[str, Any], Callable], Iterable[bytes]]

# Returns the string to sign for a request (WSGI environ or API Gateway event)
GetValue = Callable[[Any], str]


def logging_hook(
    target: Optional[logging.Logger] = None, level: int = logging.WARNING
) -> LogHook:
    """
    Build a log hook that writes diagnostics to a logger.

    Args:
        target: Logger to write to (default: this module's logger)
        level: Log level for the diagnostics

    Returns:
        Hook suitable for SigningContext.log_hook
    """
    target = target or logger

    def hook(request: Any, msg: str) -> None:
        extra = {}
        if isinstance(request, dict):
            extra["method"] = request.get("REQUEST_METHOD", request.get("httpMethod"))
            extra["path"] = request.get("PATH_INFO", request.get("path"))
        target.log(level, msg, extra=extra)

    return hook


class Signer:
    """Produces signature header values for outgoing or proxied requests."""

    def __init__(self, context: SigningContext):
        self.context = context

    def generate_header_value(self, value: str) -> str:
        """
        Sign a value at the current time.

        Args:
            value: Content both parties include in the signature

        Returns:
            Header value in the form <base64 signature>;<epoch>
        """
        epoch = httpsign.epoch_now()
        signature = compute_signature(self.context.key, value, epoch)
        return form_header(signature, epoch)

    def signed_headers(self, value: str) -> Dict[str, str]:
        """Return the signature header as a dict, ready to pass to an HTTP client."""
        return {self.context.header_name: self.generate_header_value(value)}

    def sign_to_proxy(self, app: WSGIApp, get_value: GetValue) -> WSGIApp:
        """
        Wrap a WSGI app so every request gets a signature header added.

        Any existing value for the header is kept; the new one is appended
        after it, the way repeated header lines are combined in WSGI. The
        wrapped app is always called.
        """
        environ_key = self.context.environ_key

        def middleware(environ, start_response):
            header = self.generate_header_value(get_value(environ))
            existing = environ.get(environ_key)
            environ[environ_key] = f"{existing}, {header}" if existing else header
            logger.debug("Added %s header", self.context.header_name)
            return app(environ, start_response)

        return middleware


class Verifier:
    """
    Checks signature headers on received requests.

    A header is accepted when it parses, its timestamp is no more than
    seconds_allowance old, and its signature matches the one recomputed from
    get_value and the header's timestamp.
    """

    def __init__(self, context: SigningContext):
        self.context = context

    def check(
        self, header: str, get_value: Callable[[], str], raw: Optional[str] = None
    ) -> int:
        """
        Verify a header value.

        Args:
            header: Header value to verify ("" if the header was absent)
            get_value: Zero-argument callable returning the signed value.
                Only called once the header has parsed and is fresh.
            raw: Header exactly as received, used in diagnostics
                (default: header)

        Returns:
            The verified timestamp

        Raises:
            MalformedHeader, StaleTimestamp, SignatureMismatch
        """
        if raw is None:
            raw = header
        try:
            signature, epoch = parse_header(header)
        except MalformedHeader as e:
            raise MalformedHeader(f"Unable to parse header '{raw}'") from e
        check_timestamp(epoch, httpsign.epoch_now(), self.context.seconds_allowance)
        check_signature(self.context.key, get_value(), epoch, signature, raw)
        return epoch

    def log(self, request: Any, msg: str) -> None:
        """
        Report a rejected request on the module logger and the log hook.

        Args:
            request: WSGI environ or API Gateway event being verified
            msg: Diagnostic describing why the header was rejected
        """
        logger.warning("Rejected %s: %s", self.context.header_name, msg)
        if self.context.log_hook is not None:
            self.context.log_hook(request, msg)

    def invalid_body(self) -> bytes:
        """Return the response body sent for every rejected request."""
        return f"{self.context.header_name} invalid".encode("utf-8")

    def verify(self, app: WSGIApp, get_value: GetValue) -> WSGIApp:
        """
        Wrap a WSGI app so requests without a valid signature get a 400.

        Malformed, stale and mismatched signatures all produce the same
        response, "<header_name> invalid". The wrapped app is called with
        the request unmodified only when the signature checks out.
        """

        def middleware(environ, start_response):
            if self.context.disable_verify:
                logger.debug("Signature verification disabled")
                return app(environ, start_response)

            raw = environ.get(self.context.environ_key, "")
            # Repeated header lines are joined with ", ", use the first one
            header = raw.split(", ", 1)[0]
            try:
                self.check(header, lambda: get_value(environ), raw=raw)
            except SignatureError as e:
                self.log(environ, str(e))
                body = self.invalid_body()
                start_response(
                    "400 Bad Request",
                    [
                        ("Content-Type", "text/plain; charset=utf-8"),
                        ("Content-Length", str(len(body))),
                    ],
                )
                return [body]

            return app(environ, start_response)

        return middleware


def validate_signed_event(
    event: Dict[str, Any],
    context: SigningContext,
    get_value: GetValue,
) -> Union[bool, Dict[str, Any]]:
    """
    Validate the signature header of an AWS API Gateway event.

    Args:
        event: API Gateway proxy event with a headers dict
        context: Signing configuration
        get_value: Callable returning the signed value for the event

    Returns:
        True if the signature is valid (or verification is disabled)
        Dict with statusCode 400 and body "<header_name> invalid" otherwise
    """
    if context.disable_verify:
        return True

    headers = event.get("headers", {}) or {}

    # Find the signature header (case-insensitive)
    header = ""
    wanted = context.header_name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            header = value or ""
            break

    verifier = Verifier(context)
    try:
        verifier.check(header, lambda: get_value(event))
    except SignatureError as e:
        verifier.log(event, str(e))
        return {
            "statusCode": 400,
            "body": verifier.invalid_body().decode("utf-8"),
        }

    return True
