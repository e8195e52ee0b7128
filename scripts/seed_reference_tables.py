"""Seed script for statutory reference tables.

Run with:
    python scripts/seed_reference_tables.py [--replace]

This creates the schema if needed, the tax settings row, and the default
SSS / PhilHealth / Pag-IBIG contribution brackets and withholding schedule.
"""

from __future__ import annotations

import asyncio
import sys

from payroll_workflow.database import create_schema, dispose_db, get_session, init_db
from payroll_workflow.services.reference_data_service import ReferenceDataService


async def main(replace: bool = False) -> None:
    """Seed all reference data."""
    engine, _ = init_db()
    await create_schema(engine)

    async with get_session() as session:
        counts = await ReferenceDataService(session).seed_defaults(replace=replace)

    if counts["contribution_brackets"]:
        print(f"Created {counts['contribution_brackets']} contribution brackets")
    else:
        print("Contribution brackets already present")
    if counts["withholding_brackets"]:
        print(f"Created {counts['withholding_brackets']} withholding brackets")
    else:
        print("Withholding schedule already present")

    await dispose_db()
    print("\nReference data seeded successfully!")


if __name__ == "__main__":
    asyncio.run(main(replace="--replace" in sys.argv[1:]))
