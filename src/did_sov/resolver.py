"""did:sov resolver."""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from did_sov.config import DriverConfig
from did_sov.connection import ConnectionManager, ConnectionSetupError, ConnectionState
from did_sov.did import parse_did_sov
from did_sov.ledger import LedgerClient, LedgerError, ReadRequestKind, VdrLedgerClient
from did_sov.models.did_doc import (
    DIDDOCUMENT_PUBLICKEY_TYPES,
    DIDDocument,
    PublicKey,
    Service,
)

LOGGER = logging.getLogger(__name__)

ENDPOINT_ATTRIB = "endpoint"


class ResolverError(Exception):
    """Raised on error in resolver."""


class ConnectionFailedError(ResolverError):
    """Raised when the ledger connection could not be set up."""


class LedgerRequestError(ResolverError):
    """Raised when a ledger read fails or returns a malformed reply."""

    def __init__(self, stage: ReadRequestKind, message: str):
        """Init exception."""
        super().__init__(message)
        self.stage = stage


def parse_reply_data(reply: str, stage: ReadRequestKind) -> Optional[Dict[str, Any]]:
    """Extract the record from a ledger reply.

    The record is JSON encoded a second time inside `result.data`. Returns None
    when the ledger has no record.
    """
    try:
        envelope = json.loads(reply)
    except json.JSONDecodeError as err:
        raise LedgerRequestError(stage, f"Invalid GET_{stage} reply") from err

    if envelope is None:
        return None
    if not isinstance(envelope, dict):
        raise LedgerRequestError(stage, f"Invalid GET_{stage} reply")

    result = envelope.get("result")
    if result is None:
        return None
    if not isinstance(result, dict):
        raise LedgerRequestError(stage, f"Invalid GET_{stage} result")

    data = result.get("data")
    if data is None:
        return None
    if not isinstance(data, str):
        raise LedgerRequestError(stage, f"Invalid GET_{stage} data")

    try:
        content = json.loads(data)
    except json.JSONDecodeError as err:
        raise LedgerRequestError(stage, f"Invalid GET_{stage} data") from err

    if content is None:
        return None
    if not isinstance(content, dict):
        raise LedgerRequestError(stage, f"Invalid GET_{stage} data")
    return content


def _as_string(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


def build_did_document(
    identifier: str,
    nym_data: Mapping[str, Any],
    attrib_data: Mapping[str, Any] | None,
) -> DIDDocument:
    """Map NYM and ATTRIB record contents to a DID Document."""
    verkey = nym_data.get("verkey")
    public_keys = [
        PublicKey(
            id=identifier,
            type=list(DIDDOCUMENT_PUBLICKEY_TYPES),
            key=verkey if isinstance(verkey, str) else None,
        )
    ]

    services: List[Service] = []
    endpoint = attrib_data.get(ENDPOINT_ATTRIB) if attrib_data else None
    if isinstance(endpoint, dict):
        for name, value in endpoint.items():
            services.append(Service(name=name, value=_as_string(value)))

    return DIDDocument(id=identifier, public_keys=public_keys, services=services)


class SovResolver:
    """did:sov resolver.

    Reads the NYM and the `endpoint` ATTRIB of a DID from the ledger and
    assembles a DID Document from them. The ledger connection is set up on
    the first resolution and shared by all later ones.
    """

    def __init__(self, config: DriverConfig, client: LedgerClient | None = None):
        """Init resolver."""
        self.config = config
        self.client = client or VdrLedgerClient(config)
        self.connection = ConnectionManager(config, self.client)

    async def resolve(self, identifier: str) -> DIDDocument | None:
        """Resolve a did:sov DID.

        Returns None if the identifier is not a did:sov DID or the ledger has
        no NYM for it.
        """
        target_id = parse_did_sov(identifier)
        if target_id is None:
            LOGGER.debug("Not a did:sov identifier: %s", identifier)
            return None

        try:
            state = await self.connection.ensure_ready()
        except ConnectionSetupError as err:
            raise ConnectionFailedError(str(err)) from err

        nym_reply = await self._read(state, "NYM", target_id)
        LOGGER.info("GET_NYM for %s: %s", target_id, nym_reply)
        nym_data = parse_reply_data(nym_reply, "NYM")
        if nym_data is None:
            return None

        attrib_reply = await self._read(state, "ATTRIB", target_id, ENDPOINT_ATTRIB)
        LOGGER.info("GET_ATTR for %s: %s", target_id, attrib_reply)
        attrib_data = parse_reply_data(attrib_reply, "ATTRIB")

        return build_did_document(identifier, nym_data, attrib_data)

    async def _read(
        self,
        state: ConnectionState,
        kind: ReadRequestKind,
        target_id: str,
        attr_name: str | None = None,
    ) -> str:
        try:
            request = self.client.build_read_request(
                kind, state.submitter_did, target_id, attr_name
            )
            return await self.client.sign_and_submit(
                state.pool, state.store, state.submitter_did, request
            )
        except LedgerError as err:
            raise LedgerRequestError(
                kind, f"Cannot send GET_{kind} request: {err}"
            ) from err

    async def close(self):
        """Release the ledger connection."""
        await self.connection.close()
