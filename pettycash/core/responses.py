from typing import Any


def success_response(data: Any) -> dict:
    """
    Standard success envelope used by the admin routes.

    :param data: Payload placed under "data"
    :return: {"success": True, "data": data}
    """
    return {"success": True, "data": data}
