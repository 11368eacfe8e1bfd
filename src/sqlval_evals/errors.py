from __future__ import annotations

from typing import Optional


class SqlValidationError(ValueError):
    pass


class MalformedRecordError(SqlValidationError):
    def __init__(
        self,
        message: str,
        *,
        position: Optional[int] = None,
        record_id: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        self.position = position
        self.record_id = record_id
        self.field = field
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        context_parts = []
        if self.position is not None:
            context_parts.append(f"row {self.position}")
        if self.record_id is not None:
            context_parts.append(f"id={self.record_id!r}")
        if not context_parts:
            return message
        return f"{message} ({', '.join(context_parts)})"


class UnsupportedFormatError(SqlValidationError):
    pass
