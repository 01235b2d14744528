from __future__ import annotations

import uuid
from dataclasses import dataclass

from src.config import UploadSettings
from src.domain.entities.photo import STORED_MIME_TYPES, UploadPlan, display_path, original_path
from src.domain.errors import NotAuthenticated, PartyNotAccepting, UnsupportedFormat, UploadPrepFailed
from src.infrastructure.auth.session import SessionInfo, SessionValidator
from src.infrastructure.database.repositories.party_repository import PartyRepository, PartyStatus
from src.infrastructure.storage.supabase_storage import SupabaseStorage


@dataclass
class PrepareUploadUseCase:
    sessions: SessionValidator
    parties: PartyRepository
    storage: SupabaseStorage
    settings: UploadSettings

    def authorize(self, token: str | None) -> SessionInfo:
        """Resolve the guest session and check its party accepts photos."""
        session = self.sessions.verify(token)
        if session is None:
            raise NotAuthenticated("Not authenticated")

        try:
            status = self.parties.get_status(session.party_id)
        except Exception as exc:
            raise UploadPrepFailed(f"Could not check party status: {exc}") from exc
        if status is not PartyStatus.ACTIVE:
            raise PartyNotAccepting("Party is not accepting photos")
        return session

    def execute(self, token: str | None, original_ext: str, create_display: bool) -> UploadPlan:
        """
        Authenticate, check the party accepts photos and issue write credentials.

        Allocates a fresh photo id on every call, so paths are never reused.
        Nothing is written to storage here.
        """
        session = self.authorize(token)
        if original_ext.lower() not in STORED_MIME_TYPES:
            raise UnsupportedFormat(f"Cannot store originals with extension {original_ext!r}")

        photo_id = str(uuid.uuid4())
        orig_path = original_path(session.party_id, photo_id, original_ext)
        disp_path = display_path(session.party_id, photo_id) if create_display else None
        ttl = self.settings.credential_ttl_seconds
        try:
            orig_cred = self.storage.issue_write_credential(orig_path, ttl)
            disp_cred = self.storage.issue_write_credential(disp_path, ttl) if disp_path else None
        except Exception as exc:
            raise UploadPrepFailed(f"Failed to create upload URL: {exc}") from exc

        expires_at = min(c.expires_at for c in (orig_cred, disp_cred) if c is not None)
        return UploadPlan(
            photo_id=photo_id,
            party_id=session.party_id,
            uploader_id=session.uploader_id,
            original_path=orig_path,
            original=orig_cred,
            display_path=disp_path,
            display=disp_cred,
            expires_at=expires_at,
        )
