"""Application dependencies."""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI

from did_sov.config import DriverConfig
from did_sov.resolver import SovResolver

LOGGER = logging.getLogger(__name__)

resolver: SovResolver | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Setup dependencies"""
    global resolver

    # Loads configuration from environment
    config = DriverConfig()  # type: ignore
    LOGGER.info(
        "Resolving did:sov against pool '%s' (wallet '%s')",
        config.pool_config_name,
        config.wallet_name,
    )

    # The ledger connection is opened by the first resolution
    resolver = SovResolver(config)
    yield
    await resolver.close()
    resolver = None


def get_resolver() -> SovResolver:
    """Get resolver.

    This is intended to be called by FastAPI.Depends.
    """
    global resolver
    if resolver is None:
        raise RuntimeError("Resolver is not set; did startup fail?")

    return resolver


ResolverDep = Annotated[SovResolver, Depends(get_resolver)]
