"""
Signing configuration shared by the signer and the verifier.

A SigningContext is built once at startup and passed to Signer and Verifier.
It is frozen, so it can be read from any number of request threads without
locking.
"""

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

DEFAULT_HEADER_NAME = "X-Signature"
DEFAULT_SECONDS_ALLOWANCE = 6

# Called with (request, message) on every rejected request. The request is
# the WSGI environ or the API Gateway event being verified.
LogHook = Callable[[Any, str], None]

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SigningContext:
    """Shared secret plus the header and freshness policy both sides use."""

    key: bytes = field(repr=False)
    header_name: str = DEFAULT_HEADER_NAME
    seconds_allowance: int = DEFAULT_SECONDS_ALLOWANCE
    disable_verify: bool = False  # Testing escape hatch, Verifier forwards everything
    log_hook: Optional[LogHook] = None

    def __post_init__(self):
        key: Union[bytes, str] = self.key
        if isinstance(key, str):
            object.__setattr__(self, "key", key.encode("utf-8"))
        elif isinstance(key, (bytearray, memoryview)):
            object.__setattr__(self, "key", bytes(key))
        elif not isinstance(key, bytes):
            raise ValueError(f"Key must be bytes or str, not {type(key).__name__}")

        if not self.key:
            raise ValueError("Key must not be empty")
        if not self.header_name:
            raise ValueError("Header name must not be empty")
        if isinstance(self.seconds_allowance, bool) or not isinstance(
            self.seconds_allowance, int
        ):
            raise ValueError(
                f"Seconds allowance must be an integer: {self.seconds_allowance!r}"
            )
        if self.seconds_allowance < 0:
            raise ValueError(
                f"Seconds allowance must not be negative: {self.seconds_allowance}"
            )

    @property
    def environ_key(self) -> str:
        """WSGI environ key the header is stored under, e.g. HTTP_X_SIGNATURE."""
        return "HTTP_" + self.header_name.upper().replace("-", "_")

    def with_options(self, **changes: Any) -> "SigningContext":
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        prefix: str = "HTTPSIGN_",
        log_hook: Optional[LogHook] = None,
    ) -> "SigningContext":
        """
        Build a context from environment variables.

        Reads {prefix}KEY (required), {prefix}HEADER_NAME,
        {prefix}SECONDS_ALLOWANCE and {prefix}DISABLE_VERIFY.

        Args:
            environ: Mapping to read from (default: os.environ)
            prefix: Variable name prefix
            log_hook: Optional hook, not configurable from the environment

        Returns:
            SigningContext instance

        Raises:
            ValueError: If the key is missing or a value cannot be parsed
        """
        if environ is None:
            environ = os.environ

        key = environ.get(f"{prefix}KEY")
        if not key:
            raise ValueError(f"Missing required environment variable {prefix}KEY")

        allowance_str = environ.get(f"{prefix}SECONDS_ALLOWANCE")
        if allowance_str is None or allowance_str.strip() == "":
            seconds_allowance = DEFAULT_SECONDS_ALLOWANCE
        else:
            try:
                seconds_allowance = int(allowance_str)
            except ValueError:
                raise ValueError(
                    f"{prefix}SECONDS_ALLOWANCE must be an integer: {allowance_str!r}"
                )

        disable_verify = (
            environ.get(f"{prefix}DISABLE_VERIFY", "false").strip().lower()
            in _TRUE_VALUES
        )

        return cls(
            key=key,
            header_name=environ.get(f"{prefix}HEADER_NAME") or DEFAULT_HEADER_NAME,
            seconds_allowance=seconds_allowance,
            disable_verify=disable_verify,
            log_hook=log_hook,
        )
