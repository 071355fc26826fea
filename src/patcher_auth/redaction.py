"""Last-resort scrubbing of secret material from diagnostic text.

Error messages in this package are built from fixed templates populated
with non-secret fields. Anything that may echo a remote response (HTTP
reason phrases, response bodies, transport exceptions) is passed through
:func:`sanitize` first, both on success-path debug logs and when building
exceptions.

The pass replaces:

* JWT-shaped strings (``eyJ...``.``...``.``...``),
* vendor-prefixed GitHub tokens (``ghp_``, ``gho_``, ``ghs_``, ``ghr_``,
  ``ghu_``, ``github_pat_``),
* ``Bearer <value>`` credentials,
* values following ``token``, ``secret``, ``key``, ``password`` or
  ``credential``,
* long base64-looking runs,

with :data:`REDACTED`. The function is total and idempotent:
``sanitize(sanitize(s)) == sanitize(s)`` for every string.
"""

from __future__ import annotations

import re
from typing import Optional

REDACTED = "[REDACTED]"
"""Marker substituted for every redacted fragment."""

_EMPTY_MESSAGE = "Unknown error"

_JWT = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")
_GITHUB_TOKEN = re.compile(r"(?:gh[opsru]_|github_pat_)[A-Za-z0-9_]+")
_BEARER = re.compile(r"(?i)\b(bearer\s+)[A-Za-z0-9._~+/=-]+")
_KEY_VALUE = re.compile(
    r"(?i)((?:token|secret|key|password|credential)s?"
    r"""(?:["']?\s*[:=]\s*["']?|\s+(?![:=])))"""
    r"""([^\s"'&,;\[\]]+)"""
)
_BASE64_RUN = re.compile(r"[A-Za-z0-9+/]{20,}={0,2}")


def sanitize(message: Optional[str]) -> str:
    """Return *message* with secret-looking fragments replaced by :data:`REDACTED`.

    Args:
        message: Arbitrary text, possibly echoing a remote response. ``None``
            and empty strings are accepted.

    Returns:
        The scrubbed text, or ``"Unknown error"`` when *message* is empty.

    Example::

        >>> sanitize("Authorization: Bearer abc.def token=s3cr3t")
        'Authorization: Bearer [REDACTED] token=[REDACTED]'
    """
    if not message:
        return _EMPTY_MESSAGE

    text = _JWT.sub(REDACTED, message)
    text = _GITHUB_TOKEN.sub(REDACTED, text)
    text = _BEARER.sub(lambda m: m.group(1) + REDACTED, text)
    text = _KEY_VALUE.sub(lambda m: m.group(1) + REDACTED, text)
    text = _BASE64_RUN.sub(REDACTED, text)
    return text


def mask_known(message: str, secrets: set[str], marker: str = "***") -> str:
    """Replace every exact occurrence of a registered secret in *message*.

    Longer secrets are replaced first so that a secret which contains
    another one is never left partially visible.

    Args:
        message: The text to scrub.
        secrets: Secret values registered with the output layer.
        marker: Replacement text. Defaults to the runner's ``***``.

    Returns:
        The scrubbed text.
    """
    for secret in sorted(secrets, key=len, reverse=True):
        if secret:
            message = message.replace(secret, marker)
    return message
