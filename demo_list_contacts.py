# demo_list_contacts.py
# Version: v1

r"""
Quick smoke test: look up a project and list a few of its contacts.

Run with virtualenv active and env vars loaded:
  export TELERIVET_API_KEY=...
  export TELERIVET_PROJECT_ID=PJ...
  python demo_list_contacts.py
"""

import asyncio
import os

from telerivet_client import TelerivetClient
from telerivet_client.resources import CONTACT, PROJECT


async def main() -> None:
    project_id = os.getenv("TELERIVET_PROJECT_ID")
    if not project_id:
        print("Set TELERIVET_PROJECT_ID to run this demo.")
        return

    client = TelerivetClient()

    project = await client.get_by_id(PROJECT, id=project_id)
    print(f"Using project: {project_id} ({await project.get('name')})")

    cursor = client.query(CONTACT, {"project_id": project_id}, sort="name")
    print("Contacts in project:", await cursor.count())

    async for contact in cursor.limit(10):
        print(
            f"- {await contact.get('name')} "
            f"(id={await contact.get('id')}, phone={await contact.get('phone_number')})"
        )


if __name__ == "__main__":
    asyncio.run(main())
