"""
Asset resolution for Image elements.

The renderer never does I/O on its own; callers pass an AssetResolver that
turns an element's asset_ref into raw bytes. Inline data URLs are decoded
without touching the resolver.
"""
import base64
import binascii
import logging
from typing import Mapping, Optional, Protocol

from services.printing.errors import AssetError

logger = logging.getLogger(__name__)


class AssetResolver(Protocol):
    def fetch(self, asset_ref: str) -> bytes:
        """Return the asset's bytes or raise AssetError."""
        ...


def decode_data_url(ref: str) -> bytes:
    """Decode `data:<mime>;base64,<payload>`."""
    header, sep, payload = ref.partition(",")
    if not sep or not header.startswith("data:"):
        raise AssetError("Malformed data URL")
    if ";base64" not in header:
        raise AssetError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AssetError(f"Invalid base64 in data URL: {e}")


def encode_data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class MappingAssetResolver:
    """Resolve refs from bytes the caller already fetched."""

    def __init__(self, assets: Mapping[str, bytes]):
        self._assets = dict(assets)

    def fetch(self, asset_ref: str) -> bytes:
        try:
            return self._assets[asset_ref]
        except KeyError:
            raise AssetError(f"Unknown asset reference: {asset_ref}")


class StorageAssetResolver:
    """Resolve refs as keys in the configured storage backend."""

    def __init__(self, storage, key_prefix: str = ""):
        self.storage = storage
        self.key_prefix = key_prefix.strip("/")

    def _key(self, asset_ref: str) -> str:
        ref = asset_ref.lstrip("/")
        if self.key_prefix and not ref.startswith(self.key_prefix + "/"):
            return f"{self.key_prefix}/{ref}"
        return ref

    def fetch(self, asset_ref: str) -> bytes:
        try:
            key = self._key(asset_ref)
            if not self.storage.exists(key):
                raise AssetError(f"Asset not found: {asset_ref}")
            return self.storage.get_file(key).read()
        except AssetError:
            raise
        except (OSError, ValueError) as e:
            raise AssetError(f"Failed to read asset {asset_ref}: {e}")


def load_asset(asset_ref: str, resolver: Optional[AssetResolver]) -> bytes:
    if not asset_ref:
        raise AssetError("Image element has no asset reference")
    if asset_ref.startswith("data:"):
        return decode_data_url(asset_ref)
    if resolver is None:
        raise AssetError(f"No asset resolver configured for {asset_ref}")
    return resolver.fetch(asset_ref)
