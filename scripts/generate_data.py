"""
Synthetic approval dataset generator.

Builds a deterministic account -> project -> objective hierarchy, contacts,
contributor assignments and approval transaction rows, together with the object
describes a platform would report for them. Used to seed the in-memory platform
in tests and to inspect realistic payloads offline.
"""

from __future__ import annotations

import json
import random
import sys
import time
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List

import typer

app = typer.Typer(help="Generate a synthetic approval dataset as JSON.")

TRANSACTION_OBJECT = "Payment_Transactions_Needing_Approval__c"
STATUSES = ["PM Review", "PM Review", "PM Review", "Contributor Approved", "PM Approved", "Rejected"]

Dataset = Dict[str, List[Dict[str, Any]]]


def _id(prefix: str, index: int) -> str:
    return f"{prefix}{index:015d}"


def _field(
    name: str,
    type_: str = "string",
    reference_to: str | None = None,
    relationship_name: str | None = None,
) -> Dict[str, Any]:
    return {
        "name": name,
        "type": type_,
        "referenceTo": [reference_to] if reference_to else [],
        "relationshipName": relationship_name,
    }


def build_describes(nested: bool = False) -> Dict[str, Dict[str, Any]]:
    """
    Describe payloads for every object of the dataset.

    With `nested`, the transaction object reaches contact and objective only
    through the Contributor_Project__c assignment lookup.
    """
    standard = [_field("Id", "id"), _field("Name"), _field("CreatedDate", "datetime")]
    if nested:
        lookups = [
            _field("Contributor_Project__c", "reference", "Contributor_Project__c", "Contributor_Project__r")
        ]
    else:
        lookups = [
            _field("Contact__c", "reference", "Contact", "Contact__r"),
            _field("Project_Objective__c", "reference", "Project_Objective__c", "Project_Objective__r"),
        ]
    transaction_fields = standard + lookups + [
        _field("Transaction_ID__c"),
        _field("Transaction_Date__c", "date"),
        _field("Weekending_Date__c", "date"),
        _field("Self_Reported_Hours__c", "double"),
        _field("Self_Reported_Units__c", "double"),
        _field("System_Tracked_Hours__c", "double"),
        _field("System_Tracked_Units__c", "double"),
        _field("Payrate__c", "currency"),
        _field("Payment_Amount__c", "currency"),
        _field("Status__c", "picklist"),
        _field("Rejection_Reason__c", "textarea"),
    ]
    return {
        TRANSACTION_OBJECT: {"name": TRANSACTION_OBJECT, "fields": transaction_fields},
        "Account": {"name": "Account", "fields": list(standard)},
        "Contact": {"name": "Contact", "fields": standard + [_field("Email", "email")]},
        "Project__c": {
            "name": "Project__c",
            "fields": standard + [_field("Account__c", "reference", "Account", "Account__r")],
        },
        "Project_Objective__c": {
            "name": "Project_Objective__c",
            "fields": standard + [_field("Project__c", "reference", "Project__c", "Project__r")],
        },
        "Contributor_Project__c": {
            "name": "Contributor_Project__c",
            "fields": standard
            + [
                _field("Contributor__c", "reference", "Contact", "Contributor__r"),
                _field("Project_Objective__c", "reference", "Project_Objective__c", "Project_Objective__r"),
            ],
        },
    }


def generate_dataset(
    rows: int,
    seed: int = 42,
    accounts: int = 3,
    projects_per_account: int = 2,
    objectives_per_project: int = 2,
    contributors: int = 20,
    nested: bool = False,
) -> Dataset:
    """Generate every table of the dataset keyed by object name."""
    rng = random.Random(seed)
    start = date(2024, 1, 1)

    account_rows = [{"Id": _id("001", i), "Name": f"Account {i:02d}"} for i in range(accounts)]
    project_rows = []
    for account in account_rows:
        for _ in range(projects_per_account):
            index = len(project_rows)
            project_rows.append(
                {"Id": _id("a01", index), "Name": f"Project {index:02d}", "Account__c": account["Id"]}
            )
    objective_rows = []
    for project in project_rows:
        for _ in range(objectives_per_project):
            index = len(objective_rows)
            objective_rows.append(
                {"Id": _id("a02", index), "Name": f"Objective {index:02d}", "Project__c": project["Id"]}
            )
    contact_rows = [
        {"Id": _id("003", i), "Name": f"Contributor {i:03d}", "Email": f"contributor{i:03d}@example.com"}
        for i in range(contributors)
    ]
    assignment_rows = []
    for i, contact in enumerate(contact_rows):
        objective = objective_rows[i % len(objective_rows)]
        assignment_rows.append(
            {
                "Id": _id("a03", i),
                "Name": f"Assignment {i:03d}",
                "Contributor__c": contact["Id"],
                "Project_Objective__c": objective["Id"],
            }
        )

    transactions = []
    for i in range(rows):
        assignment = assignment_rows[rng.randrange(len(assignment_rows))]
        day = start + timedelta(days=rng.randrange(120))
        self_hours = round(rng.uniform(0, 40), 1)
        system_hours = round(max(0.0, self_hours + rng.uniform(-8, 8)), 1) if i % 11 else 0.0
        pay_rate = round(rng.uniform(10, 60), 2)
        row: Dict[str, Any] = {
            "Id": _id("a04", i),
            "Name": f"PT-{i:06d}",
            "Transaction_ID__c": f"TX-{i:06d}",
            "CreatedDate": f"{day.isoformat()}T{i % 24:02d}:00:00.000+0000",
            # Sparse nulls exercise null ordering.
            "Transaction_Date__c": None if i % 97 == 0 else day.isoformat(),
            "Weekending_Date__c": (day + timedelta(days=6 - day.weekday())).isoformat(),
            "Self_Reported_Hours__c": self_hours,
            "Self_Reported_Units__c": float(rng.randrange(0, 200)),
            "System_Tracked_Hours__c": system_hours,
            "System_Tracked_Units__c": float(rng.randrange(0, 200)),
            "Payrate__c": pay_rate,
            "Payment_Amount__c": None if i % 13 == 0 else round(self_hours * pay_rate, 2),
            "Status__c": STATUSES[rng.randrange(len(STATUSES))],
            "Rejection_Reason__c": None,
        }
        if nested:
            row["Contributor_Project__c"] = assignment["Id"]
        else:
            row["Contact__c"] = assignment["Contributor__c"]
            row["Project_Objective__c"] = assignment["Project_Objective__c"]
        transactions.append(row)

    return {
        "Account": account_rows,
        "Project__c": project_rows,
        "Project_Objective__c": objective_rows,
        "Contact": contact_rows,
        "Contributor_Project__c": assignment_rows,
        TRANSACTION_OBJECT: transactions,
    }


@app.command()
def main(
    rows: int = typer.Option(1_000, "--rows", "-r", help="Number of approval rows to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    nested: bool = typer.Option(
        False, "--nested", help="Link transactions through the assignment object only."
    ),
    output: Path = typer.Option(
        Path("data/approvals.json"), "--output", "-o", help="JSON output path."
    ),
) -> None:
    """
    Generate a synthetic approval dataset with its object describes.
    """
    start = time.perf_counter()
    output.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "describes": build_describes(nested=nested),
        "records": generate_dataset(rows, seed=seed, nested=nested),
    }
    with output.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    typer.echo(f"Wrote {rows:,} approval rows -> {output} in {time.perf_counter() - start:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
