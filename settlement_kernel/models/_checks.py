"""Helpers for enum-backed CHECK constraints."""

from enum import Enum

from sqlalchemy import CheckConstraint


def enum_check(column: str, enum_cls: type[Enum], name: str, nullable: bool = False) -> CheckConstraint:
    """CHECK constraint restricting ``column`` to the values of ``enum_cls``."""
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    condition = f"{column} IN ({values})"
    if nullable:
        condition = f"{column} IS NULL OR {condition}"
    return CheckConstraint(condition, name=name)
