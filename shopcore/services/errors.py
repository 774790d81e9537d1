"""Problem-details errors raised by the services and rendered by the API layer."""

from typing import Dict, Optional


PROBLEM_BASE_URL = "https://api.shop.am/problems"


def configure_problem_base_url(base_url: str) -> None:
    global PROBLEM_BASE_URL
    PROBLEM_BASE_URL = (base_url or PROBLEM_BASE_URL).rstrip("/")


class ProblemError(Exception):
    status = 500
    slug = "internal-error"
    default_title = "Internal Server Error"

    def __init__(self, detail: str, *, title: Optional[str] = None, status: Optional[int] = None, type_: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.title = title or self.default_title
        if status is not None:
            self.status = status
        self._type = type_

    @property
    def type(self) -> str:
        return self._type or f"{PROBLEM_BASE_URL}/{self.slug}"

    def to_dict(self, instance: Optional[str] = None) -> Dict:
        body = {
            "type": self.type,
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
        }
        if instance:
            body["instance"] = instance
        return body

    @classmethod
    def from_dict(cls, payload: Dict, fallback_status: int = 500) -> "ProblemError":
        status = int(payload.get("status") or fallback_status)
        subclass = _BY_STATUS.get(status, ProblemError)
        return subclass(
            str(payload.get("detail") or payload.get("title") or "Request failed"),
            title=payload.get("title"),
            status=status,
            type_=payload.get("type"),
        )


class ValidationError(ProblemError, ValueError):
    status = 400
    slug = "validation-error"
    default_title = "Validation Error"


class NotFoundError(ProblemError):
    status = 404
    slug = "not-found"
    default_title = "Not Found"


class ConflictError(ProblemError):
    status = 409
    slug = "conflict"
    default_title = "Conflict"


class InternalError(ProblemError):
    status = 500
    slug = "internal-error"
    default_title = "Internal Server Error"


_BY_STATUS = {400: ValidationError, 404: NotFoundError, 409: ConflictError, 500: InternalError}
