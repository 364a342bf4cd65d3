"""
Seed script: creates the schema and inserts demo tickets for two customers.
Run: python -m scripts.seed_dev
"""

import asyncio
import os
import sys

import asyncpg
from dotenv import load_dotenv

from supportdesk.database import SCHEMA

load_dotenv()

CUSTOMERS = [
    {"id": "demo-customer-1", "name": "Camille Martin", "email": "camille@example.com"},
    {"id": "demo-customer-2", "name": "Lucas Bernard", "email": "lucas@example.com"},
]

TICKETS = [
    {"customer": 0, "title": "VPN disconnects every few minutes", "priority": "high",
     "description": "Since the update on Monday the VPN client drops the connection roughly every 5 minutes."},
    {"customer": 0, "title": "Request a second monitor", "priority": "low",
     "description": "I would like a second 27\" monitor for my desk."},
    {"customer": 1, "title": "Outlook keeps asking for password", "priority": "medium",
     "description": "Outlook prompts for my password several times a day even though it is correct."},
    {"customer": 1, "title": "Printer on 2nd floor offline", "priority": "medium",
     "description": "The shared printer near the kitchen shows offline for everyone."},
]


async def seed():
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL not set in .env")
        sys.exit(1)

    conn = await asyncpg.connect(database_url)

    try:
        await conn.execute(SCHEMA)

        existing = await conn.fetchval(
            "SELECT COUNT(*) FROM tickets WHERE customer_id = ANY($1::text[])",
            [c["id"] for c in CUSTOMERS],
        )
        if existing:
            print(f"Demo customers already have {existing} tickets. Skipping seed.")
            return

        for ticket in TICKETS:
            customer = CUSTOMERS[ticket["customer"]]
            row = await conn.fetchrow(
                """
                INSERT INTO tickets (title, description, priority, customer_id, customer_name, customer_email)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING id
                """,
                ticket["title"],
                ticket["description"],
                ticket["priority"],
                customer["id"],
                customer["name"],
                customer["email"],
            )
            print(f"Created ticket: {ticket['title']} (id={row['id']})")

        print("\nSeed complete!")
        for customer in CUSTOMERS:
            print(f"  Customer: {customer['name']} (X-User-Id: {customer['id']})")

    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(seed())
