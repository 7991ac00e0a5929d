"""Extract the enumerated choice list that closes a narrator turn."""

from __future__ import annotations

import re
from typing import Dict, List, Union

_OPTION_LINE = re.compile(r"^\s*(\d+)[.)]\s+(.+?)\s*$")


def _clean(text: str) -> str:
    return text.replace("**", "").strip()


def extract_options(text: str) -> List[Dict[str, Union[int, str]]]:
    """Return the trailing numbered list of `text` as option payloads.

    Only the last contiguous block of numbered lines counts, so numbers
    appearing earlier in the narration are not mistaken for choices.
    """
    options: List[Dict[str, Union[int, str]]] = []
    for line in text.splitlines():
        match = _OPTION_LINE.match(line)
        if match:
            if match.group(1) == "1":
                options = []
            options.append({"id": int(match.group(1)), "text": _clean(match.group(2))})
        elif line.strip() and options:
            options = []
    return options
