"""Shared constants and enums used across the pipeline."""

from enum import StrEnum


class CertificateStatus(StrEnum):
    """Positions in the certificate status chain, in pipeline order."""

    READY = "Ready Sol"
    LOADED = "SPL Loaded"
    MINTED = "SPL Minted"
    SUCCESS = "Success"


STATUS_CHAIN: tuple[CertificateStatus, ...] = (
    CertificateStatus.READY,
    CertificateStatus.LOADED,
    CertificateStatus.MINTED,
    CertificateStatus.SUCCESS,
)


class RecordField(StrEnum):
    """Column names in the certificates table."""

    STATUS = "Certificate Status"
    SOURCE_IMAGE = "Certificate image (from 📺 Programmes)"
    PROGRAMME = "Programme name (from 📺 Programmes)"
    LEVEL = "Achievement level"
    CERTIFICATE_ID = "Certificate ID"
    RECIPIENT_ADDRESS = "ETH address (from ☃️ People)"
    RECIPIENT_EMAIL = "Email (from ☃️ People)"

    # written by the pipeline
    IPFS_IMAGE = "IPFS Image"
    IPFS_METADATA = "IPFS Metadata"
    COLLECTION_ID = "Candy Machine ID"
    NFT_LINK = "Link to NFT"
    TRANSACTION = "TXN"


class OutcomeStatus(StrEnum):
    """Result of a single stage invocation."""

    PROCESSED = "PROCESSED"
    IDLE = "IDLE"          # nothing matched the precondition
    SKIPPED = "SKIPPED"    # record found but unusable, left untouched


class PhaseName(StrEnum):
    """Orchestrator phases, one per stage."""

    DRAIN_READY = "DrainReady"
    DRAIN_LOADED = "DrainLoaded"
    DRAIN_MINTED = "DrainMinted"


class Commitment(StrEnum):
    """Solana confirmation depth."""

    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


def next_status(status: CertificateStatus) -> CertificateStatus:
    """Return the status that follows ``status`` in the chain."""
    index = STATUS_CHAIN.index(status)
    if index == len(STATUS_CHAIN) - 1:
        raise ValueError(f"{status!r} is the final status")
    return STATUS_CHAIN[index + 1]
