"""Contains various utilities that did not fit any other category."""
from __future__ import annotations

import re

_CamelCasePattern = re.compile(r'(?<!^)(?=[A-Z])')


def camel_case2snake_case(camel_case: str) -> str:
    # adapted from https://stackoverflow.com/a/1176023
    return _CamelCasePattern.sub("_", camel_case).lower()
