from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class Query:
    """Immutable ActualQL query builder.

    Each call returns a new query, so a base query can be shared::

        q("schedules").filter({"name": name}).select("*")
    """

    table: str
    filter_expressions: tuple[dict[str, Any], ...] = ()
    select_expressions: tuple[Any, ...] = ()

    def filter(self, expression: dict[str, Any]) -> Query:
        return replace(self, filter_expressions=self.filter_expressions + (dict(expression),))

    def select(self, *expressions: Any) -> Query:
        flattened: list[Any] = []
        for expression in expressions:
            if isinstance(expression, (list, tuple)):
                flattened.extend(expression)
            else:
                flattened.append(expression)
        return replace(self, select_expressions=tuple(flattened))

    def serialize(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "tableOptions": {},
            "filterExpressions": list(self.filter_expressions),
            "selectExpressions": list(self.select_expressions),
            "groupExpressions": [],
            "orderExpressions": [],
            "calculation": False,
            "rawMode": False,
            "withDead": False,
            "validateRefs": True,
            "limit": None,
            "offset": None,
        }

    def merged_filter(self) -> dict[str, Any]:
        """All filter expressions combined into one mapping, later keys winning."""
        merged: dict[str, Any] = {}
        for expression in self.filter_expressions:
            merged.update(expression)
        return merged


def q(table: str) -> Query:
    return Query(table=table)
