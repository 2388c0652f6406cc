from pydantic import BaseModel, ConfigDict


class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    count: int
    has_next: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total": 42,
                "limit": 10,
                "offset": 0,
                "count": 10,
                "has_next": True,
            }
        }
    )

    @classmethod
    def build(cls, *, total: int, limit: int, offset: int, count: int) -> "PaginationMeta":
        return cls(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        )


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None


class ErrorDetailOut(BaseModel):
    code: str
    message: str
    request_id: str
    path: str
    details: list[ValidationIssueOut] | None = None


class ErrorOut(BaseModel):
    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "bad_request",
                    "message": "Order cannot be processed due to stock issues",
                    "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
                    "path": "/orders",
                    "details": [
                        {
                            "field": "items.1.quantity",
                            "message": "Insufficient stock for Blue Mug (MUG-BLU). Available: 0, Requested: 1",
                            "type": "insufficient_stock",
                        }
                    ],
                }
            }
        }
    )


class MessageOut(BaseModel):
    ok: bool = True
    message: str | None = None
