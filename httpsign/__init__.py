"""
HMAC-SHA256 request signing for HTTP services.

Lets a signer prove to a verifier that a request came from a holder of a
shared secret within a short time window. The signature header carries a
base64 HMAC of an agreed value plus the Unix timestamp it was made at:

    X-Signature: <base64 signature>;<epoch seconds>

Basic Usage:
    from httpsign import SigningContext, Signer, Verifier

    context = SigningContext(key=b"shared-secret")

    # Client: sign a value both sides agree on
    headers = Signer(context).signed_headers(request_id)

    # Server: wrap a WSGI app (e.g. a Flask app's wsgi_app)
    app.wsgi_app = Verifier(context).verify(
        app.wsgi_app, lambda environ: environ.get("HTTP_X_REQUEST_ID", "")
    )

Proxy Usage:
    # Add a signature header to every request before forwarding it
    proxied = Signer(context).sign_to_proxy(
        proxy_app, lambda environ: environ.get("HTTP_X_REQUEST_ID", "")
    )

API Gateway Usage:
    from httpsign import validate_signed_event

    result = validate_signed_event(event, context, lambda e: e["headers"]["X-Request-Id"])
    if result is not True:
        return result  # {"statusCode": 400, "body": "X-Signature invalid"}
"""

from httpsign.httpsign import (
    MalformedHeader,
    SignatureError,
    SignatureMismatch,
    StaleTimestamp,
    compute_signature,
    epoch_now,
    form_header,
    form_message,
    parse_header,
)

from httpsign.context import (
    DEFAULT_HEADER_NAME,
    DEFAULT_SECONDS_ALLOWANCE,
    LogHook,
    SigningContext,
)

from httpsign.middleware import (
    GetValue,
    Signer,
    Verifier,
    logging_hook,
    validate_signed_event,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Codec and MAC
    "compute_signature",
    "epoch_now",
    "form_header",
    "form_message",
    "parse_header",
    # Errors
    "MalformedHeader",
    "SignatureError",
    "SignatureMismatch",
    "StaleTimestamp",
    # Configuration
    "DEFAULT_HEADER_NAME",
    "DEFAULT_SECONDS_ALLOWANCE",
    "LogHook",
    "SigningContext",
    # Middleware
    "GetValue",
    "Signer",
    "Verifier",
    "logging_hook",
    "validate_signed_event",
]
