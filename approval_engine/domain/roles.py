"""
Logical roles and the ranked rules used to bind them to physical fields.

The target object is administrator-configurable, so each logical role carries
an ordered list of MatchRule values: exact conventional names first, then
progressively looser patterns. `match_field` evaluates a rule list over the
object's fields and is a pure function of its inputs.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Literal, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from approval_engine.domain.models import FieldDescribe


class LogicalRole(str, Enum):
    TRANSACTION_ID = "transactionId"
    CONTRIBUTOR = "contributor"
    OBJECTIVE = "reviewableObjective"
    TRANSACTION_DATE = "transactionDate"
    WEEKENDING_DATE = "weekendingDate"
    HOURS_SELF_REPORTED = "hoursSelfReported"
    HOURS_SYSTEM_TRACKED = "hoursSystemTracked"
    UNITS_SELF_REPORTED = "unitsSelfReported"
    UNITS_SYSTEM_TRACKED = "unitsSystemTracked"
    PAY_RATE = "payRate"
    TOTAL_PAYMENT = "totalPayment"
    STATUS = "status"
    VARIANCE = "variance"
    REVIEW_COMMENT = "reviewComment"


# Object types of the reviewable hierarchy, top to bottom.
CONTACT_OBJECT = "Contact"
ACCOUNT_OBJECT = "Account"
PROJECT_OBJECT = "Project__c"
OBJECTIVE_OBJECT = "Project_Objective__c"
ASSIGNMENT_OBJECT = "Contributor_Project__c"

# Relationship hops from an objective record up to its project and account.
OBJECTIVE_PROJECT_REL = "Project__r"
PROJECT_ACCOUNT_REL = "Account__r"


@dataclass(frozen=True)
class HierarchyLevel:
    """One level of the account -> project -> objective -> assignment chain."""

    object_name: str
    parent_field: Optional[str]


HIERARCHY: Tuple[HierarchyLevel, ...] = (
    HierarchyLevel(ACCOUNT_OBJECT, None),
    HierarchyLevel(PROJECT_OBJECT, "Account__c"),
    HierarchyLevel(OBJECTIVE_OBJECT, "Project__c"),
    HierarchyLevel(ASSIGNMENT_OBJECT, "Project_Objective__c"),
)


# --------------------------------------------------------------------------- #
# Match rules
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class ExactName:
    names: Tuple[str, ...]
    kind: Literal["exact"] = "exact"


@dataclass(frozen=True)
class ContainsAll:
    """Every token must appear in the name; `any_of` needs at least one hit."""

    tokens: Tuple[str, ...] = ()
    any_of: Tuple[str, ...] = ()
    suffix: Optional[str] = "__c"
    kind: Literal["contains"] = "contains"

    def test(self, name: str) -> bool:
        if self.suffix and not name.endswith(self.suffix):
            return False
        if not all(token in name for token in self.tokens):
            return False
        return not self.any_of or any(token in name for token in self.any_of)


@dataclass(frozen=True)
class Pattern:
    regex: str
    kind: Literal["pattern"] = "pattern"

    def test(self, name: str) -> bool:
        return re.search(self.regex, name) is not None


@dataclass(frozen=True)
class References:
    """Lookup fields pointing at `object_name`."""

    object_name: str
    kind: Literal["references"] = "references"


MatchRule = Union[ExactName, ContainsAll, Pattern, References]


def _hours(*tokens: str) -> ContainsAll:
    return ContainsAll(tokens=tokens, any_of=("Hour",))


def _units(*tokens: str) -> ContainsAll:
    return ContainsAll(tokens=tokens, any_of=("Unit",))


@dataclass(frozen=True)
class RoleSpec:
    role: LogicalRole
    rules: Tuple[MatchRule, ...]
    default: Optional[str] = None
    lookup: bool = False


ROLE_SPECS: Dict[LogicalRole, RoleSpec] = {
    spec.role: spec
    for spec in (
        RoleSpec(
            LogicalRole.TRANSACTION_ID,
            (
                ExactName(("Transaction_ID__c", "TransactionId__c")),
                ContainsAll(tokens=("Transaction", "ID")),
            ),
            default="Id",
        ),
        RoleSpec(
            LogicalRole.CONTRIBUTOR,
            (
                ExactName(("Contact__c", "Contributor__c", "Contributor_Id__c", "Contributor_Project__c")),
                ContainsAll(tokens=("Contact",)),
                ContainsAll(tokens=("Contributor",)),
            ),
            lookup=True,
        ),
        RoleSpec(
            LogicalRole.OBJECTIVE,
            (
                References(OBJECTIVE_OBJECT),
                ExactName(("Project_Objective__c", "ProjectObjective__c", "Objective__c")),
                ContainsAll(tokens=("Project", "Objective")),
                ContainsAll(tokens=("Objective",)),
            ),
            lookup=True,
        ),
        RoleSpec(
            LogicalRole.TRANSACTION_DATE,
            (
                ExactName(("Transaction_Date__c", "TransactionDate__c", "Date__c")),
                ContainsAll(tokens=("Transaction", "Date")),
            ),
            default="CreatedDate",
        ),
        RoleSpec(
            LogicalRole.WEEKENDING_DATE,
            (
                ExactName(("Weekending_Date__c", "WeekEndingDate__c", "Week_Ending__c")),
                ContainsAll(tokens=("Week", "Ending")),
                ContainsAll(tokens=("WeekEnding",)),
            ),
        ),
        RoleSpec(
            LogicalRole.HOURS_SELF_REPORTED,
            (
                ExactName(
                    (
                        "Self_Reported_Hours__c",
                        "SelfReportedHours__c",
                        "Self_Reported_Hour__c",
                        "SelfReportedHour__c",
                        "Hours_Self_Reported__c",
                        "Hours__c",
                    )
                ),
                _hours("Self", "Reported"),
                _hours("Self"),
                Pattern(r"^(?!.*(System|Productivity)).*Hour.*__c$"),
            ),
        ),
        RoleSpec(
            LogicalRole.UNITS_SELF_REPORTED,
            (
                ExactName(
                    (
                        "Self_Reported_Units__c",
                        "SelfReportedUnits__c",
                        "Self_Reported_Unit__c",
                        "SelfReportedUnit__c",
                        "Units_Self_Reported__c",
                        "Units__c",
                    )
                ),
                _units("Self", "Reported"),
                _units("Self"),
                Pattern(r"^(?!.*(System|Productivity)).*Unit.*__c$"),
            ),
        ),
        RoleSpec(
            LogicalRole.HOURS_SYSTEM_TRACKED,
            (
                ExactName(
                    (
                        "System_Tracked_Hours__c",
                        "SystemTrackedHours__c",
                        "System_Tracked_Hour__c",
                        "SystemTrackedHour__c",
                        "Productivity_Hours__c",
                        "Productivity_Hour__c",
                        "Hours_System_Tracked__c",
                        "Hours_System__c",
                    )
                ),
                _hours("System", "Tracked"),
                _hours("Productivity"),
                _hours("System"),
            ),
        ),
        RoleSpec(
            LogicalRole.UNITS_SYSTEM_TRACKED,
            (
                ExactName(
                    (
                        "System_Tracked_Units__c",
                        "SystemTrackedUnits__c",
                        "System_Tracked_Unit__c",
                        "SystemTrackedUnit__c",
                        "Productivity_Units__c",
                        "Productivity_Unit__c",
                        "Units_System_Tracked__c",
                        "Units_System__c",
                    )
                ),
                _units("System", "Tracked"),
                _units("Productivity"),
                _units("System"),
            ),
        ),
        RoleSpec(
            LogicalRole.PAY_RATE,
            (
                ExactName(("Payrate__c", "Pay_Rate__c", "PayRate__c", "Rate__c")),
                ContainsAll(tokens=("Pay", "Rate")),
                ContainsAll(tokens=("Rate",)),
            ),
        ),
        RoleSpec(
            LogicalRole.TOTAL_PAYMENT,
            (
                ExactName(("Payment_Amount__c", "Total_Payment__c", "TotalPayment__c", "Payment__c")),
                ContainsAll(tokens=("Payment", "Amount")),
                ContainsAll(tokens=("Total", "Payment")),
                # Status-like fields (Payment_Status__c) are not amounts.
                Pattern(r"^(?!.*Status).*Payment.*__c$"),
            ),
        ),
        RoleSpec(
            LogicalRole.STATUS,
            (
                ExactName(("Status__c", "Approval_Status__c", "Status")),
                Pattern(r"^(?!.*(Payment|Week)).*Status.*__c$"),
            ),
        ),
        RoleSpec(
            LogicalRole.VARIANCE,
            (
                ExactName(("Productivity_Variance__c", "Variance_Percent__c", "Variance__c")),
                ContainsAll(tokens=("Variance",)),
            ),
        ),
        RoleSpec(
            LogicalRole.REVIEW_COMMENT,
            (
                ExactName(("PM_Comment__c", "Rejection_Reason__c", "Reviewer_Comment__c")),
                ContainsAll(tokens=("Reject", "Reason")),
            ),
        ),
    )
}


def _rule_predicate(
    rule: MatchRule, by_name: Dict[str, "FieldDescribe"]
) -> Callable[[str], bool]:
    if isinstance(rule, References):
        return lambda name: by_name[name].references(rule.object_name)
    if isinstance(rule, (ContainsAll, Pattern)):
        return rule.test
    raise TypeError(f"Unsupported rule {rule!r}")


def match_field(
    rules: Sequence[MatchRule],
    fields: Sequence["FieldDescribe"],
    exclude: Iterable[str] = (),
) -> Optional[str]:
    """
    Return the first field name selected by the ranked rules, or None.

    Exact rules are checked in the order of their names. Every other rule scans
    the fields in describe order and returns the first hit. Names in `exclude`
    never match.
    """
    excluded = set(exclude)
    candidates = [f for f in fields if f.name not in excluded]
    by_name = {f.name: f for f in candidates}

    for rule in rules:
        if isinstance(rule, ExactName):
            for name in rule.names:
                if name in by_name:
                    return name
            continue
        predicate = _rule_predicate(rule, by_name)
        for candidate in candidates:
            if predicate(candidate.name):
                return candidate.name
    return None


def match_names(
    rules: Sequence[MatchRule], names: Sequence[str], exclude: Iterable[str] = ()
) -> Optional[str]:
    """`match_field` over bare field names (reference rules never match)."""
    from approval_engine.domain.models import FieldDescribe

    return match_field(rules, [FieldDescribe(name=n) for n in names], exclude)


__all__ = [
    "LogicalRole",
    "HierarchyLevel",
    "HIERARCHY",
    "CONTACT_OBJECT",
    "ACCOUNT_OBJECT",
    "PROJECT_OBJECT",
    "OBJECTIVE_OBJECT",
    "ASSIGNMENT_OBJECT",
    "OBJECTIVE_PROJECT_REL",
    "PROJECT_ACCOUNT_REL",
    "ExactName",
    "ContainsAll",
    "Pattern",
    "References",
    "MatchRule",
    "RoleSpec",
    "ROLE_SPECS",
    "match_field",
    "match_names",
]
