"""Deployment record CRUD operations."""

from __future__ import annotations

import json
import sqlite3


def latest_deployment(db: sqlite3.Connection, tenant_id: str) -> sqlite3.Row | None:
    """Most recent deployment row for a tenant, or None."""
    return db.execute(
        """SELECT * FROM deployments WHERE tenant_id = ?
           ORDER BY version DESC LIMIT 1""",
        (tenant_id,),
    ).fetchone()


def record_deployment(
    db: sqlite3.Connection,
    tenant_id: str,
    workflow_id: str,
    business_types: list[str],
    active: bool = False,
    warning_count: int = 0,
) -> int:
    """Record a deployment and return its version number (1-based, per tenant)."""
    row = db.execute(
        "SELECT COALESCE(MAX(version), 0) AS v FROM deployments WHERE tenant_id = ?",
        (tenant_id,),
    ).fetchone()
    version = row["v"] + 1
    db.execute(
        """INSERT INTO deployments
           (tenant_id, workflow_id, version, business_types, active, warning_count)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (tenant_id, workflow_id, version, json.dumps(business_types), active, warning_count),
    )
    db.commit()
    return version


def list_deployments(db: sqlite3.Connection, tenant_id: str | None = None) -> list[dict]:
    """List deployments, newest first, optionally for one tenant."""
    if tenant_id:
        rows = db.execute(
            "SELECT * FROM deployments WHERE tenant_id = ? ORDER BY version DESC",
            (tenant_id,),
        ).fetchall()
    else:
        rows = db.execute(
            "SELECT * FROM deployments ORDER BY deployed_at DESC, id DESC"
        ).fetchall()
    result = []
    for row in rows:
        record = dict(row)
        record["business_types"] = json.loads(record["business_types"] or "[]")
        result.append(record)
    return result
