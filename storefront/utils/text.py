"""Text helpers for generated and scraped content."""
import json
import re
from typing import Any

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumerics to single dashes, trim dashes."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def extract_json(content: str) -> Any:
    """
    Parse JSON from a model reply, unwrapping a markdown code fence if present.

    Raises:
        ValueError: If the content is not valid JSON
    """
    match = _CODE_FENCE.search(content)
    json_str = match.group(1).strip() if match else content.strip()
    return json.loads(json_str)
