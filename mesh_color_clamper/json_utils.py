"""
JSON formatting utilities.

The JSON summary is meant to be read by humans as often as by scripts, so
RGB triples stay on one line while everything else is indented normally.
"""

import json
import re
from typing import Any

# A multi-line array holding only numbers, as json.dumps(indent=...) emits it
_NUMBER_ARRAY = re.compile(r'\[\s*\n\s*([-+\d.eE,\s]+?)\s*\n\s*\]')


def _collapse(match: 're.Match[str]') -> str:
    numbers = [token.strip() for token in match.group(1).split(',')]
    return '[' + ', '.join(numbers) + ']'


def dumps_compact_arrays(
    data: Any,
    indent: int = 2,
    array_fields: list[str] | None = None
) -> str:
    """
    Format JSON with numeric arrays on single lines.

    Example:
        >>> print(dumps_compact_arrays({"rgb": [255, 0, 0]}))
        {
          "rgb": [255, 0, 0]
        }

    Args:
        data: Data structure to serialize
        indent: Number of spaces for indentation (default: 2)
        array_fields: Only compact arrays stored under these keys.
                      If None, every all-number array is compacted.

    Returns:
        The JSON text
    """
    json_str = json.dumps(data, indent=indent, ensure_ascii=False)

    if array_fields is None:
        return _NUMBER_ARRAY.sub(_collapse, json_str)

    for field_name in array_fields:
        pattern = re.compile(rf'("{re.escape(field_name)}":\s*)' + _NUMBER_ARRAY.pattern)
        json_str = pattern.sub(
            lambda m: m.group(1) + '[' + ', '.join(t.strip() for t in m.group(2).split(',')) + ']',
            json_str
        )
    return json_str
