from enum import Enum


class FilterOperator(str, Enum):
    """Comparison operators a directory filter can express."""

    EQUALS = "="
    LESS_THAN_EQUAL = "<="
    GREATER_THAN_EQUAL = ">="
    LIKE = "like"
    STARTING_WITH = "startswith"
    ENDING_WITH = "endswith"
    CONTAINING = "contains"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"

    @property
    def takes_value(self) -> bool:
        """False for presence checks, which consume no parameter."""
        return self not in (FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL)


class LogicalOperator(str, Enum):
    """Node kinds used in the dictionary form of a predicate tree."""

    AND = "and"
    OR = "or"
    NOT = "not"
