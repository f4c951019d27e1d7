"""Supabase Storage implementation of the photo object store."""

from dataclasses import dataclass

from supabase import Client

from snapnow.errors import ExternalCollaboratorError
from snapnow.services.payments import ObjectStore


@dataclass
class SupabaseObjectStore(ObjectStore):
    """Uploads delivery photos to a public Storage bucket."""

    client: Client
    bucket: str

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Upload `content` and return the object's public URL."""
        storage = self.client.storage.from_(self.bucket)
        try:
            storage.upload(
                path=path,
                file=content,
                file_options={"content-type": content_type},
            )
        except Exception as exc:
            raise ExternalCollaboratorError(f"Photo upload failed: {exc}") from exc
        return storage.get_public_url(path)
