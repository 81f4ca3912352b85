"""Tests for explorer links and the Solana gateway."""

import json
from types import SimpleNamespace

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from certmint.clients.chain import CollectionItem, CollectionSpec, ExplorerLinks
from certmint.clients.solana import (
    ADD_CONFIG_LINES_LAYOUT,
    CANDY_MACHINE_PROGRAM_ID,
    SolanaGateway,
    _discriminator,
    candy_machine_space,
    keypair_from_secret,
)
from certmint.core.errors import ChainError, ConfigurationError

WSOL_MINT = "So11111111111111111111111111111111111111112"


class TestExplorerLinks:
    def test_address_link(self):
        assert ExplorerLinks().address("Mint1") == (
            "https://explorer.solana.com/address/Mint1?cluster=mainnet-beta"
        )

    def test_transaction_link_uses_cluster(self):
        links = ExplorerLinks(base_url="https://explorer.solana.com/", cluster="devnet")

        assert links.transaction("Sig1") == "https://explorer.solana.com/tx/Sig1?cluster=devnet"

    def test_parse_address_round_trips(self):
        links = ExplorerLinks()

        assert links.parse_address(links.address("7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU")) == (
            "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
        )

    @pytest.mark.parametrize("link", [
        "https://explorer.solana.com/tx/Sig1?cluster=mainnet-beta",
        "https://explorer.solana.com/address/?cluster=mainnet-beta",
        "not a link",
    ])
    def test_parse_address_rejects_other_links(self, link):
        with pytest.raises(ValueError):
            ExplorerLinks.parse_address(link)


class TestSolanaHelpers:
    def test_keypair_from_json_secret(self):
        keypair = Keypair()
        secret = json.dumps(list(bytes(keypair)))

        assert keypair_from_secret(secret).pubkey() == keypair.pubkey()

    def test_bad_secret_is_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            keypair_from_secret("not-json")

        assert exc_info.value.details["invalid"] == ["SOLANA_SECRET_KEY"]

    def test_space_grows_with_items(self):
        one, eight = candy_machine_space(1), candy_machine_space(8)

        assert eight > one
        assert eight - one >= 7 * (4 + 32 + 4 + 200)

    def test_discriminator_is_eight_bytes(self):
        assert len(_discriminator("initialize")) == 8
        assert _discriminator("mint") != _discriminator("initialize")


class StubRpc:
    """Records what the gateway sends; answers with canned values."""

    def __init__(self, *, accounts=None, statuses=None, send_error=None, confirm_error=None) -> None:
        self.accounts = accounts or {}
        self.statuses = [SimpleNamespace(err=None)] if statuses is None else statuses
        self.send_error = send_error
        self.confirm_error = confirm_error
        self.sent: list = []
        self.confirmations: list = []
        self.closed = False

    async def get_latest_blockhash(self):
        return SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default()))

    async def get_minimum_balance_for_rent_exemption(self, space):
        return SimpleNamespace(value=1_000_000)

    async def get_account_info(self, pubkey):
        return SimpleNamespace(value=self.accounts.get(pubkey))

    async def send_transaction(self, transaction, opts=None):
        if self.send_error:
            raise self.send_error
        self.sent.append(transaction)
        return SimpleNamespace(value=transaction.signatures[0])

    async def confirm_transaction(self, signature, commitment=None):
        if self.confirm_error:
            raise self.confirm_error
        self.confirmations.append(signature)
        return SimpleNamespace(value=self.statuses)

    async def close(self) -> None:
        self.closed = True


def make_gateway(rpc: StubRpc) -> SolanaGateway:
    return SolanaGateway("https://rpc.example.org", Keypair(), WSOL_MINT, client=rpc)


def program_ids(transaction) -> list:
    keys = transaction.message.account_keys
    return [keys[ix.program_id_index] for ix in transaction.message.instructions]


class TestSolanaGateway:
    """Instruction building and error handling over a stubbed RPC client."""

    @pytest.mark.asyncio
    async def test_insert_items_chunks_config_lines(self):
        """Seven items go out as two add_config_lines transactions at indices 0 and 5."""
        rpc = StubRpc()
        items = [CollectionItem(f"Encode Certificate #{i}", f"https://ipfs.io/ipfs/QmMD_{i}.json") for i in range(7)]

        await make_gateway(rpc).insert_items(str(Keypair().pubkey()), items)

        assert len(rpc.sent) == 2
        decoded = []
        for transaction in rpc.sent:
            assert program_ids(transaction) == [CANDY_MACHINE_PROGRAM_ID]
            data = bytes(transaction.message.instructions[0].data)
            assert data[:8] == _discriminator("add_config_lines")
            decoded.append(ADD_CONFIG_LINES_LAYOUT.parse(data[8:]))
        assert [d.index for d in decoded] == [0, 5]
        assert [len(d.config_lines) for d in decoded] == [5, 2]
        assert decoded[1].config_lines[1].name == "Encode Certificate #6"
        assert len(rpc.confirmations) == 2

    @pytest.mark.asyncio
    async def test_transfer_creates_destination_account_when_absent(self):
        rpc = StubRpc()
        mint, recipient = Keypair().pubkey(), Keypair().pubkey()

        signature = await make_gateway(rpc).submit_transfer(str(mint), str(recipient))

        assert len(rpc.sent) == 1
        assert program_ids(rpc.sent[0]) == [ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID]
        assert signature == str(rpc.sent[0].signatures[0])
        # submit_transfer leaves confirmation to the caller
        assert rpc.confirmations == []

    @pytest.mark.asyncio
    async def test_transfer_reuses_existing_destination_account(self):
        mint, recipient = Keypair().pubkey(), Keypair().pubkey()
        dest = get_associated_token_address(recipient, mint)
        rpc = StubRpc(accounts={dest: SimpleNamespace(owner=TOKEN_PROGRAM_ID)})

        await make_gateway(rpc).submit_transfer(str(mint), str(recipient))

        assert program_ids(rpc.sent[0]) == [TOKEN_PROGRAM_ID]

    @pytest.mark.asyncio
    async def test_transfer_to_malformed_address_is_chain_error(self):
        rpc = StubRpc()

        with pytest.raises(ChainError, match="Invalid transfer address"):
            await make_gateway(rpc).submit_transfer(str(Keypair().pubkey()), "0x52908400098527886E0F7030069857D2E4169EE7")

        assert rpc.sent == []

    def test_validate_address(self):
        gateway = make_gateway(StubRpc())

        gateway.validate_address(str(Keypair().pubkey()))
        with pytest.raises(ValueError):
            gateway.validate_address("0x52908400098527886E0F7030069857D2E4169EE7")

    @pytest.mark.asyncio
    async def test_confirm_accepts_clean_status(self):
        rpc = StubRpc()

        await make_gateway(rpc).confirm(str(Signature.default()))

        assert rpc.confirmations == [Signature.default()]

    @pytest.mark.asyncio
    async def test_confirm_without_status_is_chain_error(self):
        rpc = StubRpc(statuses=[None])

        with pytest.raises(ChainError) as exc_info:
            await make_gateway(rpc).confirm(str(Signature.default()))

        assert exc_info.value.details["err"] == "unknown"

    @pytest.mark.asyncio
    async def test_confirm_with_error_status_is_chain_error(self):
        rpc = StubRpc(statuses=[SimpleNamespace(err="InstructionError")])

        with pytest.raises(ChainError) as exc_info:
            await make_gateway(rpc).confirm(str(Signature.default()))

        assert exc_info.value.details["err"] == "InstructionError"

    @pytest.mark.asyncio
    async def test_confirm_rpc_failure_is_chain_error(self):
        rpc = StubRpc(confirm_error=TimeoutError("timed out"))

        with pytest.raises(ChainError, match="not confirmed"):
            await make_gateway(rpc).confirm(str(Signature.default()))

    @pytest.mark.asyncio
    async def test_send_failure_is_chain_error(self):
        rpc = StubRpc(send_error=RuntimeError("blockhash not found"))

        with pytest.raises(ChainError, match="Transaction send failed: blockhash not found"):
            await make_gateway(rpc).insert_items(str(Keypair().pubkey()), [CollectionItem("a", "b")])

    @pytest.mark.asyncio
    async def test_resolve_asset(self):
        mint, other = Keypair().pubkey(), Keypair().pubkey()
        rpc = StubRpc(accounts={
            mint: SimpleNamespace(owner=TOKEN_PROGRAM_ID),
            other: SimpleNamespace(owner=Keypair().pubkey()),
        })
        gateway = make_gateway(rpc)

        assert await gateway.resolve_asset(str(mint)) == str(mint)
        with pytest.raises(ChainError, match="is not a token mint"):
            await gateway.resolve_asset(str(other))
        with pytest.raises(ChainError, match="not found"):
            await gateway.resolve_asset(str(Keypair().pubkey()))

    @pytest.mark.asyncio
    async def test_create_collection_and_mint_send_signed_transactions(self):
        rpc = StubRpc()
        gateway = make_gateway(rpc)

        address = await gateway.create_collection(CollectionSpec(3, "Encode", 1000))
        mint = await gateway.mint(address)

        assert len(rpc.sent) == 2
        assert program_ids(rpc.sent[0])[-1] == CANDY_MACHINE_PROGRAM_ID
        assert program_ids(rpc.sent[1])[-1] == CANDY_MACHINE_PROGRAM_ID
        assert mint != address
        assert len(rpc.confirmations) == 2

    @pytest.mark.asyncio
    async def test_close_closes_rpc_client(self):
        rpc = StubRpc()

        await make_gateway(rpc).close()

        assert rpc.closed
