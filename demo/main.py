"""Demo script."""

import asyncio
import json
import logging
import sys
from os import getenv

from rich.console import Console
from rich.syntax import Syntax

from did_sov.config import DriverConfig
from did_sov.resolver import SovResolver

DID = getenv("DID", "did:sov:WRfXPg8dantKVubE3HX8pw")
LOG_LEVEL = getenv("LOG_LEVEL", "info")


def logging_to_stdout():
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.WARNING,
        format="[%(levelname)s] %(name)s %(message)s",
    )
    logging.getLogger("did_sov").setLevel(LOG_LEVEL.upper())


async def main():
    """Resolve a single DID and print its document."""
    logging_to_stdout()

    config = DriverConfig(
        lib_indy_path=getenv("LIB_INDY_PATH"),
        pool_config_name="live",
        pool_genesis_txn=getenv("GENESIS", "live.txn"),
    )
    resolver = SovResolver(config)
    console = Console(width=120)
    try:
        doc = await resolver.resolve(DID)
    finally:
        await resolver.close()

    if doc is None:
        console.print(f"{DID} not found", style="bold red")
        return

    console.print(Syntax(json.dumps(doc.serialize(), indent=2), "json"))


if __name__ == "__main__":
    asyncio.run(main())
