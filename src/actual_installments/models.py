from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from actual_installments.logger import get_logger

logger = get_logger(__name__)

ConditionOp = Literal["is", "isapprox", "isbetween"]


class Transaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    date: Optional[str] = None # YYYY-MM-DD
    amount: int = 0 # minor units, outflows negative
    payee: Optional[str] = None
    account: Optional[str] = None
    notes: Optional[str] = None
    schedule: Optional[str] = None


class RecurrenceSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: str
    interval: int = 1
    frequency: str = "monthly"
    patterns: list[dict[str, Any]] = Field(default_factory=list)
    skip_weekend: bool = Field(False, alias="skipWeekend")
    weekend_solve_mode: str = Field("after", alias="weekendSolveMode")
    end_mode: str = Field("after_n_occurrences", alias="endMode")
    end_occurrences: Optional[int] = Field(None, alias="endOccurrences")
    end_date: Optional[str] = Field(None, alias="endDate")
    occurrences: list[str] = Field(default_factory=list)


class AmountRange(BaseModel):
    num1: int
    num2: int


class PayeeCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: ConditionOp = "is"
    field: Literal["payee", "description"] = "payee"
    value: Optional[str] = None


class AccountCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: ConditionOp = "is"
    field: Literal["account", "acct"] = "account"
    value: Optional[str] = None


class AmountCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: ConditionOp = "is"
    field: Literal["amount"] = "amount"
    value: Union[int, AmountRange, None] = None


class DateCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: ConditionOp = "isapprox"
    field: Literal["date"] = "date"
    value: Union[RecurrenceSpec, str, None] = None


ScheduleCondition = Annotated[
    Union[PayeeCondition, AccountCondition, AmountCondition, DateCondition],
    Field(discriminator="field"),
]

CONDITION_FIELDS = frozenset({"payee", "description", "account", "acct", "amount", "date"})

_condition_adapter = TypeAdapter(ScheduleCondition)


def parse_condition(raw: dict[str, Any]) -> ScheduleCondition | None:
    """Parse a remote condition dict, or return None for fields this tool does not manage."""
    if raw.get("field") not in CONDITION_FIELDS:
        logger.debug("[SCHEDULE] Ignoring condition on field '%s'.", raw.get("field"))
        return None
    try:
        return _condition_adapter.validate_python(raw)
    except ValidationError as exc:
        logger.debug("[SCHEDULE] Ignoring condition %s: %s", raw, exc.errors()[0]["msg"])
        return None


def dump_condition(condition: ScheduleCondition) -> dict[str, Any]:
    return condition.model_dump(mode="json", by_alias=True)


class Schedule(BaseModel):
    """A schedule record as returned by the ledger."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    posts_transaction: bool = False
    completed: bool = False
    conditions: list[ScheduleCondition] = Field(default_factory=list, alias="_conditions")

    @field_validator("conditions", mode="before")
    @classmethod
    def drop_unmanaged_conditions(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        parsed = []
        for item in value:
            if isinstance(item, dict):
                condition = parse_condition(item)
                if condition is not None:
                    parsed.append(condition)
            else:
                parsed.append(item)
        return parsed


class ScheduleFields(BaseModel):
    """Desired values for the managed condition slots of a schedule."""
    payee: Optional[str] = None
    account: Optional[str] = None
    date: Union[RecurrenceSpec, str, None] = None
    amount: Optional[int] = None
    amount_op: ConditionOp = "is"


class ScheduleDraft(BaseModel):
    name: str
    posts_transaction: bool = False
    completed: bool = False
    conditions: list[ScheduleCondition] = Field(default_factory=list)
    date: RecurrenceSpec
    payee: str = ""
    account: Optional[str] = None
    amount: int = 0
    amount_op: ConditionOp = "is"
