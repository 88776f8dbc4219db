# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""Configuration flags read from the environment.

Flags are read once at import time. Explicit arguments to the functions that
consult a flag take precedence over it.
"""

import logging
import os

logger = logging.getLogger(__name__)


def _load_boolean_flag(
    name: str,
    *,
    this_will: str,
    default: bool = False,
) -> bool:
    """Load a boolean flag from environment variable.

    Args:
        name: The name of the environment variable.
        this_will: A string that describes what this flag will do.
        default: The default value if envvar not defined.
    """
    value = os.getenv(name)
    if value is None:
        return default
    state = value == "1"
    if state != default:
        logger.warning(
            "Flag %s is %s. This will %s.",
            name,
            "enabled" if state else "disabled",
            this_will if state else f"not {this_will}",
        )
    return state


CHECK_ON_SAVE: bool = _load_boolean_flag(
    "ONNXWIRE_CHECK_ON_SAVE",
    this_will="validate graphs before they are written to disk",
    default=True,
)
CHECK_ON_LOAD: bool = _load_boolean_flag(
    "ONNXWIRE_CHECK_ON_LOAD",
    this_will="validate graphs after they are read from disk",
)
