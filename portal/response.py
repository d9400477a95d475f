from typing import Any, Optional
from pydantic import BaseModel

class ResponseModel(BaseModel):
    code: int = 200
    message: str = "success"
    data: Optional[Any] = None

    @staticmethod
    def success(data: Any = None, message: str = "success"):
        return {"code": 200, "message": message, "data": data}

    @staticmethod
    def fail(code: int = 400, message: str = "error", data: Any = None):
        return {"code": code, "message": message, "data": data}

    @staticmethod
    def paginated(items: list, total: int, page: int, limit: int, key: str = "items"):
        """Success envelope for a page of results."""
        pages = (total + limit - 1) // limit if limit else 0
        return ResponseModel.success(data={
            key: items,
            "pagination": {"total": total, "page": page, "limit": limit, "pages": pages},
        })
