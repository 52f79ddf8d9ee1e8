"""Unit tests for OIDCVerifier."""

import base64
import json
import time
import pytest
from unittest.mock import AsyncMock, Mock, patch
from uuid import uuid4

import httpx
from jose import JWTError
from sqlalchemy import select

from app.models.identity import UserIdentity
from app.services.oidc_verifier import OIDCVerifier


ISSUER = "https://auth.tenanthub.example"


def _verifier(**kwargs) -> OIDCVerifier:
    return OIDCVerifier(issuer=ISSUER, client_id="tenant-hub-web", **kwargs)


def _fake_token(claims: dict) -> str:
    """Unsigned RS256-shaped JWT; only good for unverified decoding."""
    header = base64.urlsafe_b64encode(b'{"alg":"RS256","typ":"JWT"}').rstrip(b"=").decode()
    payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()
    return f"{header}.{payload}.fakesig"


def _claims(sub="user_2abc123", email="alice@example.com"):
    return {
        "sub": sub,
        "email": email,
        "aud": "tenant-hub-web",
        "iss": ISSUER,
        "exp": int(time.time()) + 3600,
    }


@pytest.mark.unit
class TestIssued:
    def test_matching_issuer(self):
        assert _verifier().issued(_fake_token({"iss": ISSUER, "sub": "user123"})) is True

    def test_other_issuer(self):
        token = _fake_token({"iss": "https://other.issuer.com", "sub": "user123"})
        assert _verifier().issued(token) is False

    def test_garbage(self):
        assert _verifier().issued("not.a.jwt") is False
        assert _verifier().issued("") is False


@pytest.mark.unit
class TestResolveUserId:
    """JWKS fetch and signature checks are mocked."""

    @pytest.fixture
    def mock_db(self):
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_linked_subject_returns_user_id(self, mock_db):
        verifier = _verifier()
        link = Mock()
        link.user_id = uuid4()
        mock_result = Mock()
        mock_result.scalar_one_or_none = Mock(return_value=link)
        mock_db.execute = AsyncMock(return_value=mock_result)

        with patch.object(verifier, "_signing_keys", new=AsyncMock(return_value={"keys": []})):
            with patch("app.services.oidc_verifier.jose_jwt") as mock_jwt:
                mock_jwt.decode = Mock(return_value=_claims())
                user_id = await verifier.resolve_user_id(mock_db, "fake.oidc.token")

        assert user_id == link.user_id
        assert link.last_seen_at is not None
        mock_db.commit.assert_awaited_once()
        assert mock_jwt.decode.call_args.kwargs["audience"] == "tenant-hub-web"
        assert mock_jwt.decode.call_args.kwargs["issuer"] == ISSUER

    @pytest.mark.asyncio
    async def test_bad_signature_returns_none(self, mock_db):
        verifier = _verifier()
        with patch.object(verifier, "_signing_keys", new=AsyncMock(return_value={"keys": []})):
            with patch("app.services.oidc_verifier.jose_jwt") as mock_jwt:
                mock_jwt.decode = Mock(side_effect=JWTError("bad signature"))
                assert await verifier.resolve_user_id(mock_db, "bad.oidc.token") is None

        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_jwks_unreachable_returns_none(self, mock_db):
        verifier = _verifier()
        failure = httpx.ConnectError("network error")
        with patch.object(verifier, "_signing_keys", new=AsyncMock(side_effect=failure)):
            assert await verifier.resolve_user_id(mock_db, "any.token.here") is None

    @pytest.mark.asyncio
    async def test_unlinked_subject_without_provisioning_returns_none(self, mock_db):
        verifier = _verifier(auto_provision=False)
        mock_result = Mock()
        mock_result.scalar_one_or_none = Mock(return_value=None)
        mock_db.execute = AsyncMock(return_value=mock_result)

        with patch.object(verifier, "_signing_keys", new=AsyncMock(return_value={"keys": []})):
            with patch("app.services.oidc_verifier.jose_jwt") as mock_jwt:
                mock_jwt.decode = Mock(return_value=_claims())
                assert await verifier.resolve_user_id(mock_db, "fake.oidc.token") is None

        mock_db.add.assert_not_called()


@pytest.mark.unit
class TestSigningKeysCache:
    @pytest.mark.asyncio
    async def test_jwks_fetched_once_per_window(self):
        verifier = _verifier()
        response = Mock()
        response.json = Mock(return_value={"keys": [{"kid": "k1"}]})
        response.raise_for_status = Mock()

        client = AsyncMock()
        client.get = AsyncMock(return_value=response)
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)

        with patch("app.services.oidc_verifier.httpx.AsyncClient", return_value=client):
            first = await verifier._signing_keys()
            second = await verifier._signing_keys()

        assert first == second == {"keys": [{"kid": "k1"}]}
        client.get.assert_awaited_once_with(f"{ISSUER}/.well-known/jwks.json")


class TestFirstSignIn:
    """Linking a new subject against a real session."""

    @pytest.mark.asyncio
    async def test_new_subject_creates_user_and_link(self, db_session):
        verifier = _verifier()

        user_id = await verifier._link_user(db_session, "user_new", "new@example.com")

        assert user_id is not None
        link = (await db_session.execute(select(UserIdentity))).scalar_one()
        assert link.user_id == user_id
        assert link.provider == "oidc"
        assert link.provider_email == "new@example.com"

    @pytest.mark.asyncio
    async def test_existing_email_is_linked_not_duplicated(self, db_session, staff_user):
        verifier = _verifier()

        user_id = await verifier._link_user(db_session, "user_staff", "STAFF@example.com")
        link = await verifier._find_link(db_session, "user_staff")

        assert user_id == staff_user.id
        assert link.user_id == staff_user.id
        result = await db_session.execute(select(UserIdentity))
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_verified_token_for_new_subject_is_provisioned(self, db_session):
        verifier = _verifier()

        with patch.object(verifier, "_signing_keys", new=AsyncMock(return_value={"keys": []})):
            with patch("app.services.oidc_verifier.jose_jwt") as mock_jwt:
                mock_jwt.decode = Mock(return_value=_claims(sub="user_9", email="nine@example.com"))
                first = await verifier.resolve_user_id(db_session, "fake.oidc.token")
                second = await verifier.resolve_user_id(db_session, "fake.oidc.token")

        assert first is not None
        assert second == first
