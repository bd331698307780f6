from pydantic import BaseModel


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit if limit else 0
        return cls(current_page=page, total_pages=total_pages, total=total)


class ErrorBody(BaseModel):
    kind: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorBody
