"""did:sov parsing."""

import re

DID_SOV_PATTERN = re.compile(r"^did:sov:(\S*)$")


def parse_did_sov(did: str) -> str | None:
    """Extract the method specific id (the nym) from a did:sov DID.

    Returns None when the identifier is not a did:sov DID.
    """
    match = DID_SOV_PATTERN.fullmatch(did)
    if not match:
        return None
    return match.group(1)
