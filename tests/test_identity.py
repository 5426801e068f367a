import pytest
from itsdangerous import BadSignature

from clinicdesk.core.identity import (
    ROLE_PERMISSIONS,
    AuthorizationContext,
    decode_identity_token,
    issue_identity_token,
)


def test_token_round_trips_into_context():
    token = issue_identity_token("user_42", "pharmacist", "Sam", secret="s3cret")
    ctx = decode_identity_token(token, secret="s3cret")
    assert ctx == AuthorizationContext(user_id="user_42", role="PHARMACIST", name="Sam")
    assert ctx.can("sales:void")
    assert not ctx.can("patients:write")


def test_token_signed_with_other_secret_is_rejected():
    token = issue_identity_token("user_42", "SUPER_ADMIN", secret="one")
    with pytest.raises(BadSignature):
        decode_identity_token(token, secret="two")


def test_unknown_role_is_rejected():
    token = issue_identity_token("user_42", "JANITOR", secret="s3cret")
    with pytest.raises(BadSignature):
        decode_identity_token(token, secret="s3cret")


def test_expired_token_is_rejected():
    token = issue_identity_token("user_42", "NURSE", secret="s3cret")
    with pytest.raises(BadSignature):
        decode_identity_token(token, secret="s3cret", max_age=-1)


def test_permission_matrix():
    assert ROLE_PERMISSIONS["SUPER_ADMIN"] >= ROLE_PERMISSIONS["PHARMACIST"] - {"dashboard:read"}
    assert "lab-results:write" in ROLE_PERMISSIONS["LABORATORIST"]
    assert "sales:write" not in ROLE_PERMISSIONS["NURSE"]
    assert AuthorizationContext("u", "NURSE").display_name == "u"
