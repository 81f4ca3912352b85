"""
ChainGateway — abstract interface to the blockchain service.

Stages only talk to this interface.  The Solana implementation lives in
certmint.clients.solana; tests use an in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlsplit


@dataclass(frozen=True)
class CollectionSpec:
    """Parameters of a new collection container."""

    items_available: int
    symbol: str
    seller_fee_basis_points: int
    is_mutable: bool = True
    max_edition_supply: int = 0


@dataclass(frozen=True)
class CollectionItem:
    """One mintable entry registered into a collection container."""

    name: str
    uri: str


class ChainGateway(ABC):
    """
    Async operations against the chain.

    Every method that writes waits for the gateway's configured
    commitment level before returning, except submit_transfer(), which
    returns as soon as the transaction is accepted; call confirm() on its
    signature.
    """

    @abstractmethod
    async def create_collection(self, spec: CollectionSpec) -> str:
        """Create a collection container.  Returns its address."""
        ...

    @abstractmethod
    async def insert_items(self, collection_id: str, items: list[CollectionItem]) -> None:
        """Register items into a container, in order."""
        ...

    @abstractmethod
    async def mint(self, collection_id: str) -> str:
        """Mint the next item of a container.  Returns the minted asset address."""
        ...

    @abstractmethod
    async def resolve_asset(self, asset_address: str) -> str:
        """Check that a minted asset exists.  Raises ChainError if not."""
        ...

    @abstractmethod
    def validate_address(self, address: str) -> None:
        """Raise ValueError unless ``address`` is a well-formed account address."""
        ...

    @abstractmethod
    async def submit_transfer(self, asset_address: str, recipient: str) -> str:
        """Send an ownership transfer.  Returns the transaction signature."""
        ...

    @abstractmethod
    async def confirm(self, signature: str) -> None:
        """Wait until ``signature`` reaches the configured commitment."""
        ...

    async def close(self) -> None:
        pass


@dataclass(frozen=True)
class ExplorerLinks:
    """Builds and parses public explorer URLs."""

    base_url: str = "https://explorer.solana.com"
    cluster: str = "mainnet-beta"

    def address(self, address: str) -> str:
        return f"{self.base_url.rstrip('/')}/address/{address}?cluster={self.cluster}"

    def transaction(self, signature: str) -> str:
        return f"{self.base_url.rstrip('/')}/tx/{signature}?cluster={self.cluster}"

    @staticmethod
    def parse_address(link: str) -> str:
        """Extract the address from an ``.../address/<addr>?...`` link."""
        path = urlsplit(link).path
        marker = "/address/"
        if marker not in path:
            raise ValueError(f"Not an explorer address link: {link!r}")
        address = path.split(marker, 1)[1].strip("/")
        if not address:
            raise ValueError(f"Explorer link has no address: {link!r}")
        return address
