import datetime

import jwt
import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASS, JWT_SECRET
from smhelper.auth import AdminGate, TokenIssuer
from smhelper.auth.tokens import MAX_ALLOWED_REQUESTS
from smhelper.config import AdminConfig, TokenConfig
from smhelper.errors import BadRequest, QuotaExhausted, Revoked, Unauthenticated
from smhelper.state import SqliteTokenStore
from smhelper.state.models import utcnow


class TestAdminGate:
    def test_accepts_configured_credentials(self):
        AdminGate(AdminConfig(email=ADMIN_EMAIL, password=ADMIN_PASS)).check(ADMIN_EMAIL, ADMIN_PASS)

    @pytest.mark.parametrize(
        "email, password",
        [("bad", ADMIN_PASS), (ADMIN_EMAIL, "bad"), (None, None), ("", ""), (ADMIN_EMAIL, 123), (["x"], ADMIN_PASS)],
    )
    def test_rejects_wrong_credentials(self, email, password):
        gate = AdminGate(AdminConfig(email=ADMIN_EMAIL, password=ADMIN_PASS))
        with pytest.raises(Unauthenticated) as exc_info:
            gate.check(email, password)
        assert exc_info.value.message == "Invalid admin credentials"

    def test_unconfigured_gate_rejects_everything(self):
        with pytest.raises(Unauthenticated):
            AdminGate(AdminConfig()).check("", "")


class TestIssue:
    def test_token_embeds_owner_and_store_has_quota(self, issuer: TokenIssuer, store):
        issued = issuer.issue("owner@example.com", 7)

        claims = jwt.decode(issued.token, JWT_SECRET, algorithms=["HS256"])
        assert claims["email"] == "owner@example.com"
        record = store.fetch(issued.token)
        assert record.allowed_requests == 7
        assert record.email == "owner@example.com"
        assert record.expires_at == issued.expires_at

    def test_expiry_is_thirty_days_out(self, issuer: TokenIssuer):
        before = utcnow()
        issued = issuer.issue("owner@example.com", 1)

        assert datetime.timedelta(days=29, hours=23) < issued.expires_at - before <= datetime.timedelta(days=30, seconds=1)
        claims = jwt.decode(issued.token, JWT_SECRET, algorithms=["HS256"])
        assert claims["exp"] == int(issued.expires_at.timestamp())

    def test_tokens_for_same_owner_are_distinct(self, issuer: TokenIssuer):
        first = issuer.issue("owner@example.com", 1)
        second = issuer.issue("owner@example.com", 1)
        assert first.token != second.token

    @pytest.mark.parametrize("email, allowed", [(None, 5), ("", 5), ("a@b.c", None), ("a@b.c", 0), ("a@b.c", -3)])
    def test_missing_or_invalid_fields(self, issuer: TokenIssuer, email, allowed):
        with pytest.raises(BadRequest):
            issuer.issue(email, allowed)

    @pytest.mark.parametrize("allowed", ["ten", 2.5, True, [3], "-1", 2**63])
    def test_malformed_quota_is_rejected(self, issuer: TokenIssuer, allowed):
        with pytest.raises(BadRequest) as exc_info:
            issuer.issue("a@b.c", allowed)
        assert exc_info.value.message == "allowedRequests must be a positive integer"

    def test_non_string_email_is_rejected(self, issuer: TokenIssuer):
        with pytest.raises(BadRequest):
            issuer.issue(12345, 5)

    def test_numeric_string_quota_is_accepted(self, issuer: TokenIssuer):
        assert issuer.issue("a@b.c", " 12 ").allowed_requests == 12

    def test_largest_quota_fits_sqlite(self, temp_dir):
        sqlite_issuer = TokenIssuer(TokenConfig(jwt_secret=JWT_SECRET), SqliteTokenStore(str(temp_dir / "tokens.db")))

        issued = sqlite_issuer.issue("a@b.c", MAX_ALLOWED_REQUESTS)
        assert sqlite_issuer.store.fetch(issued.token).allowed_requests == MAX_ALLOWED_REQUESTS

        with pytest.raises(BadRequest):
            sqlite_issuer.issue("a@b.c", MAX_ALLOWED_REQUESTS + 1)

    def test_requires_secret(self, store):
        with pytest.raises(ValueError):
            TokenIssuer(TokenConfig(jwt_secret=None), store)


class TestValidate:
    def test_valid_token(self, issuer: TokenIssuer, make_token):
        token = make_token("user@example.com", 3)

        validated = issuer.validate(token)
        assert validated.email == "user@example.com"
        assert validated.record.allowed_requests == 3

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, issuer: TokenIssuer, token):
        with pytest.raises(Unauthenticated) as exc_info:
            issuer.validate(token)
        assert exc_info.value.message == "API token is required"

    def test_garbled_token(self, issuer: TokenIssuer):
        with pytest.raises(Unauthenticated) as exc_info:
            issuer.validate("not-a-jwt")
        assert exc_info.value.message == "Invalid or expired token"
        assert exc_info.value.details

    def test_foreign_signature(self, issuer: TokenIssuer, store):
        forged = jwt.encode(
            {"email": "x@example.com", "exp": utcnow() + datetime.timedelta(days=1)},
            "some-other-secret",
            algorithm="HS256",
        )
        store.save(forged, "x@example.com", 5, utcnow() + datetime.timedelta(days=1))

        with pytest.raises(Unauthenticated):
            issuer.validate(forged)

    def test_signature_expired(self, issuer: TokenIssuer, store):
        stale = jwt.encode(
            {"email": "x@example.com", "exp": utcnow() - datetime.timedelta(minutes=1)},
            JWT_SECRET,
            algorithm="HS256",
        )
        store.save(stale, "x@example.com", 5, utcnow() + datetime.timedelta(days=1))

        with pytest.raises(Unauthenticated):
            issuer.validate(stale)

    def test_valid_signature_without_store_record_is_revoked(self, issuer: TokenIssuer):
        orphan = jwt.encode(
            {"email": "x@example.com", "exp": utcnow() + datetime.timedelta(days=1)},
            JWT_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(Revoked) as exc_info:
            issuer.validate(orphan)
        assert exc_info.value.status_code == 403

    def test_store_expiry_overrides_valid_signature(self, issuer: TokenIssuer, store, make_token):
        token = make_token("user@example.com", 5)
        store.save(token, "user@example.com", 5, utcnow() - datetime.timedelta(seconds=1))

        with pytest.raises(Revoked):
            issuer.validate(token)

    def test_quota_exhausted(self, issuer: TokenIssuer, store, make_token):
        token = make_token("user@example.com", 1)
        store.decrement(token)

        with pytest.raises(QuotaExhausted) as exc_info:
            issuer.validate(token)
        assert exc_info.value.status_code == 402
        assert exc_info.value.message == "Request limit exceeded"
