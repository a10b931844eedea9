import logging.config
from os import getenv

from fastapi import FastAPI

from did_sov.driver.depends import lifespan

from .api import resolver

LOG_LEVEL = getenv("LOG_LEVEL", "INFO")
logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": True,
        "formatters": {
            "standard": {
                "format": "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "did_sov": {
                "handlers": ["default"],
                "level": LOG_LEVEL,
                "propagate": True,
            },
            "indy_vdr": {
                "handlers": ["default"],
                "level": LOG_LEVEL,
                "propagate": True,
            },
            "uvicorn": {
                "handlers": ["default"],
                "level": LOG_LEVEL,
                "propagate": True,
            },
        },
    }
)

app = FastAPI(
    title="did:sov",
    summary="did:sov resolver driver",
    openapi_tags=[
        {
            "name": "Resolver",
            "description": "DID resolution",
            "externalDocs": {
                "description": "Specification",
                "url": "https://w3c-ccg.github.io/did-resolution/",
            },
        },
    ],
    lifespan=lifespan,
)

app.include_router(resolver.router)
