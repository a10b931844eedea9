"""DID Document models."""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

DID_CONTEXT = "https://w3id.org/did/v0.11"
DIDDOCUMENT_PUBLICKEY_TYPES = ("Ed25519SigningKey",)


class PublicKey(BaseModel):
    """Public key entry of a DID Document."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: List[str] = Field(default_factory=lambda: list(DIDDOCUMENT_PUBLICKEY_TYPES))
    key: str | None = Field(None, alias="publicKeyBase58")


class Service(BaseModel):
    """Service entry of a DID Document."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="type")
    value: str | None = Field(None, alias="serviceEndpoint")


class DIDDocument(BaseModel):
    """DID Document."""

    model_config = ConfigDict(populate_by_name=True)

    context: str = Field(DID_CONTEXT, alias="@context")
    id: str
    public_keys: List[PublicKey] = Field(default_factory=list, alias="publicKey")
    services: List[Service] = Field(default_factory=list, alias="service")

    def serialize(self) -> Dict[str, Any]:
        """Serialize to the DID Document JSON shape."""
        return self.model_dump(by_alias=True, exclude_none=True)
