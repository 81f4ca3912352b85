"""Tests for the Pinata and SendGrid HTTP clients."""

import json

import httpx
import pytest

from certmint.clients.pinata import PinataClient
from certmint.clients.sendgrid import SendGridClient
from certmint.core.errors import NotificationError, PinningError


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestPinataClient:
    @pytest.mark.asyncio
    async def test_pin_file_posts_multipart(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"IpfsHash": "QmImage", "PinSize": 4})

        pinata = PinataClient("k", "s", client=mock_client(handler))

        url = await pinata.pin_file(b"\xff\xd8\xff\xe0", "NFT_7.jpg")

        assert url == "https://ipfs.io/ipfs/QmImage"
        request = seen[0]
        assert request.url.path == "/pinning/pinFileToIPFS"
        assert request.headers["pinata_api_key"] == "k"
        assert request.headers["pinata_secret_api_key"] == "s"
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'filename="NFT_7.jpg"' in request.content

    @pytest.mark.asyncio
    async def test_pin_json_wraps_document(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"IpfsHash": "QmMeta"})

        pinata = PinataClient("k", "s", gateway_url="https://gateway.example/", client=mock_client(handler))

        url = await pinata.pin_json({"name": "Encode Certificate #7"}, "MD_7.json")

        assert url == "https://gateway.example/ipfs/QmMeta"
        assert seen[0] == {
            "pinataContent": {"name": "Encode Certificate #7"},
            "pinataMetadata": {"name": "MD_7.json"},
        }

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        pinata = PinataClient("k", "s", client=mock_client(lambda r: httpx.Response(401, text="bad key")))

        with pytest.raises(PinningError) as exc_info:
            await pinata.pin_json({}, "MD_1.json")

        assert exc_info.value.status_code == 401
        assert exc_info.value.response_body == "bad key"

    @pytest.mark.asyncio
    async def test_missing_hash_raises(self):
        pinata = PinataClient("k", "s", client=mock_client(lambda r: httpx.Response(200, json={})))

        with pytest.raises(PinningError, match="no IpfsHash"):
            await pinata.pin_file(b"x", "NFT_1.jpg")


class TestSendGridClient:
    @pytest.mark.asyncio
    async def test_send_builds_v3_payload(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        mailer = SendGridClient("SG.key", sender="nfts@encode.club", client=mock_client(handler))

        await mailer.send("ada@example.com", "Your NFT", "<p>hi</p>")

        request = seen[0]
        assert request.url.path == "/v3/mail/send"
        assert request.headers["Authorization"] == "Bearer SG.key"
        assert json.loads(request.content) == {
            "personalizations": [{"to": [{"email": "ada@example.com"}]}],
            "from": {"email": "nfts@encode.club"},
            "subject": "Your NFT",
            "content": [{"type": "text/html", "value": "<p>hi</p>"}],
        }

    @pytest.mark.asyncio
    async def test_rejected_send_raises(self):
        mailer = SendGridClient(
            "SG.key",
            sender="nfts@encode.club",
            client=mock_client(lambda r: httpx.Response(400, json={"errors": []})),
        )

        with pytest.raises(NotificationError) as exc_info:
            await mailer.send("ada@example.com", "s", "b")

        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"to": "ada@example.com"}

    def test_from_settings(self, settings):
        mailer = SendGridClient.from_settings(settings)

        assert mailer.sender == "nfts@encode.club"
        assert mailer.api_url == "https://api.sendgrid.com/v3"
