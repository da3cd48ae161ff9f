from __future__ import annotations

from pydantic import BaseModel


def _nullable_sum(a: int | None, b: int | None) -> int | None:
    if a is None and b is None:
        return None
    return (a or 0) + (b or 0)


class UsageDetails(BaseModel):
    """Token counters reported by a model.

    Every counter is independently optional: ``None`` means the
    provider did not report it, not that it was zero.  Entries in
    ``additional_counts`` are provider-specific counters that are
    assumed to be summable.
    """

    input_token_count: int | None = None
    output_token_count: int | None = None
    total_token_count: int | None = None
    additional_counts: dict[str, int] | None = None

    def add(self, usage: UsageDetails) -> None:
        """Fold *usage* into these counters in place."""
        if usage is None:
            raise ValueError("usage must not be None")

        self.input_token_count = _nullable_sum(
            self.input_token_count, usage.input_token_count
        )
        self.output_token_count = _nullable_sum(
            self.output_token_count, usage.output_token_count
        )
        self.total_token_count = _nullable_sum(
            self.total_token_count, usage.total_token_count
        )

        if usage.additional_counts is None:
            return
        if self.additional_counts is None:
            self.additional_counts = dict(usage.additional_counts)
            return
        for key, value in usage.additional_counts.items():
            if key in self.additional_counts:
                self.additional_counts[key] += value
            else:
                self.additional_counts[key] = value

    def __str__(self) -> str:
        parts = []
        if self.input_token_count is not None:
            parts.append(f"input_token_count = {self.input_token_count}")
        if self.output_token_count is not None:
            parts.append(f"output_token_count = {self.output_token_count}")
        if self.total_token_count is not None:
            parts.append(f"total_token_count = {self.total_token_count}")
        for key, value in (self.additional_counts or {}).items():
            parts.append(f"{key} = {value}")
        return ", ".join(parts)
