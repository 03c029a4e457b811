"""Units and site_config repository."""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor

from cozynook.domain.models import InventoryUnit, UnitKind


def get_unit(cur: PgCursor, unit_id: str) -> InventoryUnit | None:
    cur.execute(
        "SELECT id, kind, price, name FROM inventory_units WHERE id = %s",
        (unit_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return InventoryUnit(id=row[0], kind=UnitKind(row[1]), price=int(row[2]), name=row[3])


def list_units(cur: PgCursor) -> list[InventoryUnit]:
    cur.execute("SELECT id, kind, price, name FROM inventory_units ORDER BY kind DESC, id")
    return [
        InventoryUnit(id=r[0], kind=UnitKind(r[1]), price=int(r[2]), name=r[3])
        for r in cur.fetchall()
    ]


def get_config(cur: PgCursor, key: str) -> str | None:
    cur.execute("SELECT value FROM site_config WHERE key = %s", (key,))
    row = cur.fetchone()
    return row[0] if row else None


def set_config(cur: PgCursor, key: str, value: str) -> None:
    cur.execute(
        """
        INSERT INTO site_config (key, value, updated_at)
        VALUES (%s, %s, now())
        ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = now()
        """,
        (key, value),
    )
