"""
discord_stamp.report — Assemble the credential report.

The report is the only artifact that leaves the pipeline. It holds the four
criterion results and derives ``overall_passed`` from them on every access.
Two serialized forms exist:

    to_dict()    — API/display form: metrics plus bounded display lists
    to_record()  — long-term form: counts only, account id salted and hashed
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .criteria import ACCOUNT_AGE, ROLE_ASSIGNMENTS, SERVER_COUNT, VERIFIED_CONNECTIONS
from .models import CriterionResult


def hash_account_id(account_id: str, salt: str = "") -> str:
    return hashlib.sha256(f"{salt}:{account_id}".encode()).hexdigest()


@dataclass(frozen=True)
class CredentialReport:
    account_id: str
    account_age: CriterionResult
    server_count: CriterionResult
    role_assignments: CriterionResult
    verified_connections: CriterionResult
    evaluated_at: str
    partial: bool = False

    @property
    def criteria(self) -> tuple[CriterionResult, ...]:
        return (self.account_age, self.server_count, self.role_assignments,
                self.verified_connections)

    @property
    def overall_passed(self) -> bool:
        return all(c.passed for c in self.criteria)

    def failure_messages(self) -> list[str]:
        return [c.message for c in self.criteria if not c.passed]

    def to_dict(self) -> dict:
        """Display form, keyed the way the web client expects."""
        return {
            "accountAge": self.account_age.to_dict(),
            "serverCount": self.server_count.to_dict(),
            "roleAssignments": self.role_assignments.to_dict(),
            "verifiedConnections": self.verified_connections.to_dict(),
            "overallPassed": self.overall_passed,
            "partial": self.partial,
            "evaluatedAt": self.evaluated_at,
        }

    def to_record(self, salt: str = "") -> dict:
        """Storage form. Counts are strings, matching the credential schema."""
        return {
            "id": hash_account_id(self.account_id, salt),
            "accountAgeDays": str(self.account_age.metric),
            "serverCount": str(self.server_count.metric),
            "serversWithRoles": str(self.role_assignments.metric),
            "verifiedConnectionCount": str(self.verified_connections.metric),
            "overallPassed": self.overall_passed,
        }


def assemble_report(
    account_id: str,
    account_age: CriterionResult,
    server_count: CriterionResult,
    role_assignments: CriterionResult,
    verified_connections: CriterionResult,
    *,
    evaluated_at: Optional[datetime] = None,
    partial: bool = False,
) -> CredentialReport:
    """Package four criterion results into a report.

    Raises:
        ValueError: a result was passed in the wrong slot.
    """
    slots = (
        (ACCOUNT_AGE, account_age),
        (SERVER_COUNT, server_count),
        (ROLE_ASSIGNMENTS, role_assignments),
        (VERIFIED_CONNECTIONS, verified_connections),
    )
    for expected, result in slots:
        if result.name != expected:
            raise ValueError(f"expected {expected} result, got {result.name}")

    evaluated_at = evaluated_at or datetime.now(timezone.utc)
    if evaluated_at.tzinfo is None:
        evaluated_at = evaluated_at.replace(tzinfo=timezone.utc)

    return CredentialReport(
        account_id=str(account_id),
        account_age=account_age,
        server_count=server_count,
        role_assignments=role_assignments,
        verified_connections=verified_connections,
        evaluated_at=evaluated_at.isoformat(),
        partial=partial,
    )
