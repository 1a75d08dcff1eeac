"""The ``{success, data, message}`` envelope shared by every endpoint."""

from typing import Any


def envelope(data: Any = None, message: str = "", success: bool = True) -> dict[str, Any]:
    return {"success": success, "data": data, "message": message}
