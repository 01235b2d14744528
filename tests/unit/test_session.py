from datetime import timedelta

from jose import jwt

from src.infrastructure.auth.session import SessionValidator, create_session


def test_valid_session_yields_party_and_uploader():
    token = create_session("party-1", "uploader-1")
    info = SessionValidator().verify(token)
    assert info is not None
    assert (info.party_id, info.uploader_id) == ("party-1", "uploader-1")


def test_expired_session_is_invalid():
    token = create_session("party-1", "uploader-1", expires_in=timedelta(seconds=-10))
    assert SessionValidator().verify(token) is None


def test_foreign_signature_is_invalid():
    token = create_session("party-1", "uploader-1")
    assert SessionValidator(secret="another-secret-that-is-also-32-chars-long").verify(token) is None


def test_missing_claims_are_invalid():
    validator = SessionValidator()
    token = jwt.encode({"partyId": "party-1"}, validator.secret, algorithm="HS256")
    assert validator.verify(token) is None
    assert validator.verify("") is None
    assert validator.verify("not-a-jwt") is None
