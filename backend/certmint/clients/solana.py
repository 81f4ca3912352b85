"""
SolanaGateway — ChainGateway backed by Solana RPC and Candy Machine Core.

Collection containers are Candy Machine Core accounts created without a
guard, so the signing wallet is the mint authority and can mint directly.
Minted assets are plain non-fungible SPL tokens; ownership transfer is an
SPL transfer into the recipient's associated token account.
"""

from __future__ import annotations

import hashlib
import json

from borsh_construct import Bool, CStruct, Option, String, U8, U16, U32, U64, Vec
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import TxOpts
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import CreateAccountParams, create_account
from solders.sysvar import INSTRUCTIONS as SYSVAR_INSTRUCTIONS
from solders.sysvar import SLOT_HASHES as SYSVAR_SLOT_HASHES
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    InitializeMintParams,
    MintToParams,
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    initialize_mint,
    mint_to,
    transfer_checked,
)

from certmint.clients.chain import ChainGateway, CollectionItem, CollectionSpec
from certmint.core.config import Settings
from certmint.core.errors import ChainError, ConfigurationError
from certmint.core.logging import get_logger

logger = get_logger(__name__)

CANDY_MACHINE_PROGRAM_ID = Pubkey.from_string("CndyV3LdqHUfDLmE5naZjVN8rBZz4tqhdefbAnjHG3JR")
TOKEN_METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

MINT_ACCOUNT_SIZE = 82
CONFIG_LINES_PER_TX = 5

# Candy Machine Core account layout limits
MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200
MAX_CREATOR_LIMIT = 5
MAX_CREATOR_LEN = 32 + 1 + 1
CONFIG_LINE_SIZE = 4 + MAX_NAME_LENGTH + 4 + MAX_URI_LENGTH
HIDDEN_SECTION = (
    8 + 1 + 1 + 6                       # discriminator, version, token standard, features
    + 32 + 32 + 32                      # authority, mint authority, collection mint
    + 8                                 # items redeemed
    + 8 + 4 + MAX_SYMBOL_LENGTH + 2 + 8 + 1
    + 4 + MAX_CREATOR_LIMIT * MAX_CREATOR_LEN
    + 1 + 4 + MAX_NAME_LENGTH + 4 + 4 + MAX_URI_LENGTH + 4 + 1   # config line settings
    + 1 + 4 + MAX_NAME_LENGTH + 4 + MAX_URI_LENGTH + 32          # hidden settings
)

CREATOR_LAYOUT = CStruct(
    "address" / U8[32],
    "verified" / Bool,
    "percentage_share" / U8,
)
CANDY_MACHINE_DATA_LAYOUT = CStruct(
    "items_available" / U64,
    "symbol" / String,
    "seller_fee_basis_points" / U16,
    "max_supply" / U64,
    "is_mutable" / Bool,
    "creators" / Vec(CREATOR_LAYOUT),
    "config_line_settings" / Option(CStruct(
        "prefix_name" / String,
        "name_length" / U32,
        "prefix_uri" / String,
        "uri_length" / U32,
        "is_sequential" / Bool,
    )),
    "hidden_settings" / Option(CStruct(
        "name" / String,
        "uri" / String,
        "hash" / U8[32],
    )),
)
ADD_CONFIG_LINES_LAYOUT = CStruct(
    "index" / U32,
    "config_lines" / Vec(CStruct("name" / String, "uri" / String)),
)


def _discriminator(name: str) -> bytes:
    """Anchor instruction discriminator."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


def candy_machine_space(items_available: int) -> int:
    """Account size for a candy machine holding ``items_available`` config lines."""
    return (
        HIDDEN_SECTION
        + 4
        + items_available * CONFIG_LINE_SIZE
        + (items_available // 8) + 1
        + items_available * 4
    )


def keypair_from_secret(secret: str) -> Keypair:
    """Parse a JSON array secret key (solana-keygen format)."""
    try:
        return Keypair.from_bytes(bytes(json.loads(secret)))
    except (ValueError, TypeError) as exc:
        raise ConfigurationError(
            "SOLANA_SECRET_KEY must be a JSON array of 64 integers",
            details={"invalid": ["SOLANA_SECRET_KEY"]},
        ) from exc


def pubkey_from_setting(name: str, value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} is not a valid base58 address",
            details={"invalid": [name]},
        ) from exc


def metadata_pda(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )[0]


def master_edition_pda(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint), b"edition"],
        TOKEN_METADATA_PROGRAM_ID,
    )[0]


def candy_machine_authority_pda(candy_machine: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [b"candy_machine", bytes(candy_machine)],
        CANDY_MACHINE_PROGRAM_ID,
    )[0]


def collection_authority_record_pda(collection_mint: Pubkey, authority: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [
            b"metadata",
            bytes(TOKEN_METADATA_PROGRAM_ID),
            bytes(collection_mint),
            b"collection_authority",
            bytes(authority),
        ],
        TOKEN_METADATA_PROGRAM_ID,
    )[0]


class SolanaGateway(ChainGateway):
    """ChainGateway over a Solana RPC endpoint, signing with one wallet."""

    def __init__(
        self,
        rpc_url: str,
        wallet: Keypair,
        collection_mint: str,
        *,
        commitment: str = "finalized",
        timeout: float = 30.0,
        client: AsyncClient | None = None,
    ) -> None:
        self.wallet = wallet
        self.collection_mint = pubkey_from_setting("COLLECTION_MINT", collection_mint)
        self.commitment = Commitment(commitment)
        self._client = client or AsyncClient(rpc_url, commitment=self.commitment, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> SolanaGateway:
        return cls(
            settings.QUICKNODE_RPC,
            keypair_from_secret(settings.SOLANA_SECRET_KEY),
            settings.COLLECTION_MINT,
            commitment=settings.SOLANA_COMMITMENT.value,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    # ─── ChainGateway ──────────────────────────────────

    async def create_collection(self, spec: CollectionSpec) -> str:
        payer = self.wallet.pubkey()
        candy_machine = Keypair()
        space = candy_machine_space(spec.items_available)
        lamports = (await self._client.get_minimum_balance_for_rent_exemption(space)).value

        data = CANDY_MACHINE_DATA_LAYOUT.build({
            "items_available": spec.items_available,
            "symbol": spec.symbol,
            "seller_fee_basis_points": spec.seller_fee_basis_points,
            "max_supply": spec.max_edition_supply,
            "is_mutable": spec.is_mutable,
            "creators": [{"address": list(bytes(payer)), "verified": False, "percentage_share": 100}],
            "config_line_settings": None,
            "hidden_settings": None,
        })
        authority_pda = candy_machine_authority_pda(candy_machine.pubkey())
        initialize = Instruction(
            CANDY_MACHINE_PROGRAM_ID,
            _discriminator("initialize") + data,
            [
                AccountMeta(candy_machine.pubkey(), is_signer=False, is_writable=True),
                AccountMeta(authority_pda, is_signer=False, is_writable=True),
                AccountMeta(payer, is_signer=False, is_writable=False),
                AccountMeta(payer, is_signer=True, is_writable=True),
                AccountMeta(metadata_pda(self.collection_mint), is_signer=False, is_writable=False),
                AccountMeta(self.collection_mint, is_signer=False, is_writable=False),
                AccountMeta(master_edition_pda(self.collection_mint), is_signer=False, is_writable=False),
                AccountMeta(payer, is_signer=True, is_writable=True),
                AccountMeta(
                    collection_authority_record_pda(self.collection_mint, authority_pda),
                    is_signer=False,
                    is_writable=True,
                ),
                AccountMeta(TOKEN_METADATA_PROGRAM_ID, is_signer=False, is_writable=False),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
                AccountMeta(SYSVAR_INSTRUCTIONS, is_signer=False, is_writable=False),
            ],
        )
        allocate = create_account(CreateAccountParams(
            from_pubkey=payer,
            to_pubkey=candy_machine.pubkey(),
            lamports=lamports,
            space=space,
            owner=CANDY_MACHINE_PROGRAM_ID,
        ))
        signature = await self._send([allocate, initialize], [self.wallet, candy_machine])
        address = str(candy_machine.pubkey())
        logger.info(
            "Candy machine created",
            candy_machine=address,
            items_available=spec.items_available,
            signature=signature,
        )
        return address

    async def insert_items(self, collection_id: str, items: list[CollectionItem]) -> None:
        candy_machine = Pubkey.from_string(collection_id)
        for start in range(0, len(items), CONFIG_LINES_PER_TX):
            chunk = items[start:start + CONFIG_LINES_PER_TX]
            data = ADD_CONFIG_LINES_LAYOUT.build({
                "index": start,
                "config_lines": [{"name": item.name, "uri": item.uri} for item in chunk],
            })
            instruction = Instruction(
                CANDY_MACHINE_PROGRAM_ID,
                _discriminator("add_config_lines") + data,
                [
                    AccountMeta(candy_machine, is_signer=False, is_writable=True),
                    AccountMeta(self.wallet.pubkey(), is_signer=True, is_writable=False),
                ],
            )
            await self._send([instruction], [self.wallet])
            logger.info("Config lines inserted", candy_machine=collection_id, index=start, count=len(chunk))

    async def mint(self, collection_id: str) -> str:
        payer = self.wallet.pubkey()
        candy_machine = Pubkey.from_string(collection_id)
        nft_mint = Keypair()
        token_account = get_associated_token_address(payer, nft_mint.pubkey())
        lamports = (await self._client.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)).value
        authority_pda = candy_machine_authority_pda(candy_machine)

        instructions = [
            create_account(CreateAccountParams(
                from_pubkey=payer,
                to_pubkey=nft_mint.pubkey(),
                lamports=lamports,
                space=MINT_ACCOUNT_SIZE,
                owner=TOKEN_PROGRAM_ID,
            )),
            initialize_mint(InitializeMintParams(
                decimals=0,
                program_id=TOKEN_PROGRAM_ID,
                mint=nft_mint.pubkey(),
                mint_authority=payer,
                freeze_authority=payer,
            )),
            create_associated_token_account(payer, payer, nft_mint.pubkey()),
            mint_to(MintToParams(
                program_id=TOKEN_PROGRAM_ID,
                mint=nft_mint.pubkey(),
                dest=token_account,
                mint_authority=payer,
                amount=1,
            )),
            Instruction(
                CANDY_MACHINE_PROGRAM_ID,
                _discriminator("mint"),
                [
                    AccountMeta(candy_machine, is_signer=False, is_writable=True),
                    AccountMeta(authority_pda, is_signer=False, is_writable=True),
                    AccountMeta(payer, is_signer=True, is_writable=False),
                    AccountMeta(payer, is_signer=True, is_writable=True),
                    AccountMeta(nft_mint.pubkey(), is_signer=False, is_writable=True),
                    AccountMeta(payer, is_signer=True, is_writable=False),
                    AccountMeta(metadata_pda(nft_mint.pubkey()), is_signer=False, is_writable=True),
                    AccountMeta(master_edition_pda(nft_mint.pubkey()), is_signer=False, is_writable=True),
                    AccountMeta(
                        collection_authority_record_pda(self.collection_mint, authority_pda),
                        is_signer=False,
                        is_writable=False,
                    ),
                    AccountMeta(self.collection_mint, is_signer=False, is_writable=False),
                    AccountMeta(metadata_pda(self.collection_mint), is_signer=False, is_writable=True),
                    AccountMeta(master_edition_pda(self.collection_mint), is_signer=False, is_writable=False),
                    AccountMeta(payer, is_signer=False, is_writable=False),
                    AccountMeta(TOKEN_METADATA_PROGRAM_ID, is_signer=False, is_writable=False),
                    AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
                    AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
                    AccountMeta(SYSVAR_SLOT_HASHES, is_signer=False, is_writable=False),
                ],
            ),
        ]
        signature = await self._send(instructions, [self.wallet, nft_mint])
        address = str(nft_mint.pubkey())
        logger.info("NFT minted", candy_machine=collection_id, mint=address, signature=signature)
        return address

    async def resolve_asset(self, asset_address: str) -> str:
        mint = Pubkey.from_string(asset_address)
        response = await self._client.get_account_info(mint)
        if response.value is None:
            raise ChainError(f"NFT {asset_address} not found", details={"mint": asset_address})
        if response.value.owner != TOKEN_PROGRAM_ID:
            raise ChainError(
                f"Account {asset_address} is not a token mint",
                details={"mint": asset_address, "owner": str(response.value.owner)},
            )
        return asset_address

    def validate_address(self, address: str) -> None:
        Pubkey.from_string(address)

    async def submit_transfer(self, asset_address: str, recipient: str) -> str:
        owner = self.wallet.pubkey()
        try:
            mint = Pubkey.from_string(asset_address)
            to_owner = Pubkey.from_string(recipient)
        except ValueError as exc:
            raise ChainError(
                f"Invalid transfer address: {exc}",
                details={"mint": asset_address, "recipient": recipient},
            ) from exc
        source = get_associated_token_address(owner, mint)
        dest = get_associated_token_address(to_owner, mint)

        instructions = []
        if (await self._client.get_account_info(dest)).value is None:
            instructions.append(create_associated_token_account(owner, to_owner, mint))
        instructions.append(transfer_checked(TransferCheckedParams(
            program_id=TOKEN_PROGRAM_ID,
            source=source,
            mint=mint,
            dest=dest,
            owner=owner,
            amount=1,
            decimals=0,
        )))
        signature = await self._send(instructions, [self.wallet], confirm=False)
        logger.info("Transfer submitted", mint=asset_address, recipient=recipient, signature=signature)
        return signature

    async def confirm(self, signature: str) -> None:
        try:
            response = await self._client.confirm_transaction(
                Signature.from_string(signature),
                commitment=self.commitment,
            )
        except Exception as exc:
            raise ChainError(
                f"Transaction {signature} not confirmed: {exc}",
                details={"signature": signature},
            ) from exc
        statuses = response.value
        status = statuses[0] if statuses else None
        if status is None or status.err is not None:
            raise ChainError(
                f"Transaction {signature} failed",
                details={"signature": signature, "err": str(status.err) if status else "unknown"},
            )

    async def close(self) -> None:
        await self._client.close()

    # ─── Helpers ───────────────────────────────────────

    async def _send(self, instructions: list[Instruction], signers: list[Keypair], confirm: bool = True) -> str:
        """Sign with ``signers`` (fee payer first), send, and optionally confirm."""
        try:
            blockhash = (await self._client.get_latest_blockhash()).value.blockhash
            message = Message.new_with_blockhash(instructions, self.wallet.pubkey(), blockhash)
            transaction = Transaction(signers, message, blockhash)
            response = await self._client.send_transaction(
                transaction,
                opts=TxOpts(skip_confirmation=True, preflight_commitment=self.commitment),
            )
        except ChainError:
            raise
        except Exception as exc:
            raise ChainError(f"Transaction send failed: {exc}") from exc

        signature = str(response.value)
        if confirm:
            await self.confirm(signature)
        return signature
