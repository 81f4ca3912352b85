"""Pytest configuration, in-memory fakes and fixtures."""

import copy
import io
from typing import Any

import httpx
import pytest
from PIL import Image

from certmint.clients.chain import ChainGateway, CollectionItem, CollectionSpec, ExplorerLinks
from certmint.core.config import REQUIRED_ENV, Settings
from certmint.core.constants import CertificateStatus, RecordField
from certmint.core.errors import ChainError, NotificationError
from certmint.pipeline.context import StageContext
from certmint.rendering.certificate import CertificateRenderer, FontSet
from certmint.repositories.base import Record, RecordStore

SOURCE_IMAGE_URL = "https://assets.example.org/programmes/bootcamp.png"

REQUIRED_VALUES = {
    "AIRTABLE_API_KEY": "key-test",
    "BASE_ID": "appTEST",
    "TABLE_NAME": "Certificates",
    "QUICKNODE_RPC": "https://rpc.example.org",
    "SOLANA_SECRET_KEY": "[1, 2, 3]",
    "PINATA_API_KEY": "pinata-key",
    "PINATA_SECRET_API_KEY": "pinata-secret",
    "COLLECTION_MINT": "So11111111111111111111111111111111111111112",
    "SENDGRID_API_KEY": "SG.test",
}


def make_settings(**overrides) -> Settings:
    values = {
        **REQUIRED_VALUES,
        "ORCHESTRATOR_STEP_DELAY_SECONDS": 0,
        "ORCHESTRATOR_CYCLE_DELAY_SECONDS": 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def source_png(size=(640, 400)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, (20, 30, 90, 255)).save(buf, format="PNG")
    return buf.getvalue()


# ═══════════════════════════════════════════════════════════
#  Fakes
# ═══════════════════════════════════════════════════════════

class InMemoryRecordStore(RecordStore):
    """Ordered dict of records; status filtering by exact equality."""

    def __init__(self, records: list[Record] | None = None) -> None:
        self.records: dict[str, Record] = {}
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.closed = False
        for record in records or []:
            self.add(record)

    def add(self, record: Record) -> Record:
        self.records[record.id] = record
        return record

    async def fetch_batch(self, status, limit: int) -> list[Record]:
        matching = [r for r in self.records.values() if r.status == str(status)]
        return [copy.deepcopy(r) for r in matching[:limit]]

    async def update(self, record_id: str, fields: dict[str, Any]) -> Record:
        plain = {str(k): (str(v) if isinstance(v, CertificateStatus) else v) for k, v in fields.items()}
        self.updates.append((record_id, plain))
        self.records[record_id].fields.update(plain)
        return copy.deepcopy(self.records[record_id])

    async def close(self) -> None:
        self.closed = True

    def statuses(self) -> dict[str, str]:
        return {rid: r.status for rid, r in self.records.items()}


class FakePinning:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.documents: dict[str, dict] = {}

    async def pin_file(self, content: bytes, filename: str, content_type: str = "image/jpeg") -> str:
        self.files[filename] = content
        return f"https://ipfs.io/ipfs/Qm{filename}"

    async def pin_json(self, document: dict, name: str) -> str:
        self.documents[name] = document
        return f"https://ipfs.io/ipfs/Qm{name}"

    async def close(self) -> None:
        pass


BASE58_ALPHABET = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")


class FakeChain(ChainGateway):
    """Counts calls and fails on request."""

    def __init__(self, *, fail_on_transfer: bool = False, mint_failures: int = 0) -> None:
        self.collections: dict[str, dict[str, Any]] = {}
        self.minted: list[str] = []
        self.transfers: list[tuple[str, str]] = []
        self.confirmed: list[str] = []
        self.fail_on_transfer = fail_on_transfer
        self.mint_failures = mint_failures
        self.mint_calls = 0

    async def create_collection(self, spec: CollectionSpec) -> str:
        collection_id = f"CandyMachine{len(self.collections) + 1}"
        self.collections[collection_id] = {"spec": spec, "items": []}
        return collection_id

    async def insert_items(self, collection_id: str, items: list[CollectionItem]) -> None:
        self.collections[collection_id]["items"].extend(items)

    async def mint(self, collection_id: str) -> str:
        self.mint_calls += 1
        if self.mint_failures:
            self.mint_failures -= 1
            raise ChainError("mint simulation failed")
        address = f"Mint{len(self.minted) + 1}"
        self.minted.append(address)
        return address

    async def resolve_asset(self, asset_address: str) -> str:
        if asset_address not in self.minted:
            raise ChainError(f"Unknown asset {asset_address}")
        return asset_address

    def validate_address(self, address: str) -> None:
        if not 32 <= len(address) <= 44 or not set(address) <= BASE58_ALPHABET:
            raise ValueError("Invalid Base58 string")

    async def submit_transfer(self, asset_address: str, recipient: str) -> str:
        if self.fail_on_transfer:
            raise ChainError("transfer rejected")
        self.transfers.append((asset_address, recipient))
        return f"Sig{len(self.transfers)}"

    async def confirm(self, signature: str) -> None:
        self.confirmed.append(signature)


class FakeMailer:
    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[dict[str, str]] = []
        self.fail = fail

    async def send(self, to: str, subject: str, html: str) -> None:
        if self.fail:
            raise NotificationError("SendGrid mail/send returned 500", status_code=500)
        self.sent.append({"to": to, "subject": subject, "html": html})

    async def close(self) -> None:
        pass


# ═══════════════════════════════════════════════════════════
#  Record builders
# ═══════════════════════════════════════════════════════════

def ready_record(record_id: str, certificate_id: int, **extra) -> Record:
    fields = {
        RecordField.STATUS.value: CertificateStatus.READY.value,
        RecordField.SOURCE_IMAGE.value: [{"url": SOURCE_IMAGE_URL, "filename": "bootcamp.png"}],
        RecordField.PROGRAMME.value: ["Solana Bootcamp"],
        RecordField.LEVEL.value: "Graduate",
        RecordField.CERTIFICATE_ID.value: certificate_id,
        RecordField.RECIPIENT_ADDRESS.value: ["Recipient1111111111111111111111111111111111"],
        RecordField.RECIPIENT_EMAIL.value: ["ada@example.com"],
    }
    fields.update(extra)
    return Record(id=record_id, fields=fields)


def loaded_record(record_id: str, certificate_id: int, collection_id: str = "CandyMachine1") -> Record:
    return ready_record(
        record_id,
        certificate_id,
        **{
            RecordField.STATUS.value: CertificateStatus.LOADED.value,
            RecordField.COLLECTION_ID.value: collection_id,
        },
    )


def minted_record(record_id: str, mint_address: str) -> Record:
    return ready_record(
        record_id,
        1,
        **{
            RecordField.STATUS.value: CertificateStatus.MINTED.value,
            RecordField.COLLECTION_ID.value: "CandyMachine1",
            RecordField.NFT_LINK.value: ExplorerLinks().address(mint_address),
        },
    )


# ═══════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════

@pytest.fixture
def clean_env(monkeypatch):
    """Remove any real credentials from the process environment."""
    for name in REQUIRED_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def pinning():
    return FakePinning()


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def image_transport():
    """Serves a generated PNG for the programme background URL."""
    png = source_png()

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == SOURCE_IMAGE_URL:
            return httpx.Response(200, content=png, headers={"content-type": "image/png"})
        return httpx.Response(404, text="not found")

    return httpx.MockTransport(handler)


@pytest.fixture
def ctx(settings, store, pinning, chain, mailer, image_transport):
    return StageContext(
        settings=settings,
        store=store,
        pinning=pinning,
        chain=chain,
        mailer=mailer,
        renderer=CertificateRenderer(FontSet(size=16), margin=20),
        http=httpx.AsyncClient(transport=image_transport),
        links=ExplorerLinks(),
    )
