from typing import Any, Dict

from fastapi import Request


def get_runtime(request: Request) -> Dict[str, Any]:
    return request.app.state.runtime
