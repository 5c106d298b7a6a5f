from typing import Any, Optional

import httpx


def json_or_none(resp: httpx.Response) -> Optional[Any]:
    """Decoded JSON body, or None when the body is not JSON."""
    try:
        return resp.json()
    except ValueError:
        return None


def error_reason(resp: httpx.Response) -> str:
    data = json_or_none(resp)
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return resp.reason_phrase


def json_object(resp: httpx.Response) -> Optional[dict]:
    """Decoded body when it is a JSON object, otherwise None."""
    data = json_or_none(resp)
    return data if isinstance(data, dict) else None
