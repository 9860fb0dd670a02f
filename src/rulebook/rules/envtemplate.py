"""Environment variable substitution applied to raw rule file bytes."""

from __future__ import annotations

import os
import re
from typing import Mapping

_ENV_REF = re.compile(rb"%\{([A-Za-z_][A-Za-z0-9_]*)\}")


def replace_env(data: bytes, environ: Mapping[str, str] | None = None) -> bytes:
    """
    Replace ``%{NAME}`` references with environment values.

    References to unset variables are left as they are.
    """
    env = os.environ if environ is None else environ

    def _sub(match: re.Match) -> bytes:
        name = match.group(1).decode()
        if name not in env:
            return match.group(0)
        return env[name].encode()

    return _ENV_REF.sub(_sub, data)
