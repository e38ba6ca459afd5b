"""Query-string helpers for Bitrix24 REST calls and inbound webhooks."""

import re
import urllib.parse
from typing import Any

_DOCUMENT_DEAL_RE = re.compile(r"^DEAL_(\d+)$")


def parse_nested_query(query_string: str) -> dict[str, Any]:
    """Parse URL-encoded nested query string from Bitrix24 webhook.

    Bitrix24 sends webhook data as URL-encoded form data with nested keys like:
    data[FIELDS][ID]=123&event=ONCRMDEALUPDATE

    This function parses such strings into nested Python dictionaries.

    Args:
        query_string: URL-encoded query string from webhook body

    Returns:
        Nested dictionary with parsed data

    Example:
        >>> parse_nested_query("event=ONCRMDEALUPDATE&data[FIELDS][ID]=123")
        {'event': 'ONCRMDEALUPDATE', 'data': {'FIELDS': {'ID': '123'}}}
    """
    pairs = urllib.parse.parse_qsl(query_string)
    result: dict[str, Any] = {}

    for key, value in pairs:
        # data[FIELDS][ID] -> ['data', 'FIELDS', 'ID']
        parts = key.replace("]", "").split("[")

        current = result
        for part in parts[:-1]:
            if part == "":
                continue
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        last_key = parts[-1]
        if last_key == "":
            # deal_id[]=1&deal_id[]=2
            last_key = str(len(current))
        current[last_key] = value

    return result


def build_nested_query(params: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten params into Bitrix24 bracket notation.

    Inverse of :func:`parse_nested_query`, used when a REST method is called
    with its parameters in the URL query string.

    Example:
        >>> build_nested_query({"filter": {"UF_CRM_TASK": "D_1"}, "select": ["ID"]})
        [('filter[UF_CRM_TASK]', 'D_1'), ('select[0]', 'ID')]
    """
    pairs: list[tuple[str, str]] = []

    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)

        if isinstance(value, dict):
            pairs.extend(build_nested_query(value, name))
        elif isinstance(value, (list, tuple)):
            pairs.extend(
                build_nested_query({str(i): item for i, item in enumerate(value)}, name)
            )
        elif value is None:
            pairs.append((name, ""))
        elif isinstance(value, bool):
            pairs.append((name, "Y" if value else "N"))
        else:
            pairs.append((name, str(value)))

    return pairs


def extract_deal_ids(payload: dict[str, Any]) -> Any:
    """Find the deal id(s) in an inbound request payload.

    Looks at, in order:
    - ``deal_id`` (scalar, list, or ``deal_id[0]=..`` form arrays)
    - ``document_id`` from Bitrix business process webhooks (``DEAL_123``)
    - ``data[FIELDS][ID]`` from ONCRMDEAL* event handlers

    Returns:
        The raw value found, or None
    """
    deal_id = payload.get("deal_id")
    if isinstance(deal_id, dict):
        return list(deal_id.values())
    if deal_id not in (None, "", []):
        return deal_id

    document_id = payload.get("document_id")
    if isinstance(document_id, dict):
        document_id = list(document_id.values())
    if isinstance(document_id, list):
        for part in document_id:
            match = _DOCUMENT_DEAL_RE.match(str(part))
            if match:
                return match.group(1)

    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("FIELDS"), dict):
        return data["FIELDS"].get("ID")

    return None
