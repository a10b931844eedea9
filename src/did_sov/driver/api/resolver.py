"""Resolver API."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from did_sov.driver.depends import ResolverDep
from did_sov.resolver import ResolverError

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["Resolver"])


class ResolutionResult(BaseModel):
    """DID resolution result."""

    did_document: Dict[str, Any] | None = Field(alias="didDocument")
    did_resolution_metadata: Dict[str, Any] = Field(alias="didResolutionMetadata")
    did_document_metadata: Dict[str, Any] = Field(alias="didDocumentMetadata")


@router.get("/1.0/identifiers/{identifier}")
async def get_identifier(identifier: str, resolver: ResolverDep) -> ResolutionResult:
    """Resolve a did:sov DID."""
    try:
        document = await resolver.resolve(identifier)
    except ResolverError as err:
        LOGGER.exception("Failed to resolve %s", identifier)
        raise HTTPException(500, detail=str(err))

    if document is None:
        return JSONResponse(  # type: ignore
            status_code=404,
            content={
                "didDocument": None,
                "didResolutionMetadata": {"error": "notFound"},
                "didDocumentMetadata": {},
            },
        )

    return ResolutionResult(
        didDocument=document.serialize(),
        didResolutionMetadata={"contentType": "application/did+ld+json"},
        didDocumentMetadata={},
    )
