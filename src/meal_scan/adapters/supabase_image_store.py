"""Supabase Storage bucket for meal photos."""

from dataclasses import dataclass

from supabase import Client

from meal_scan.services.meals import ImageStore


@dataclass
class SupabaseImageStore(ImageStore):
    """Supabase implementation for photo blobs."""

    client: Client
    bucket: str

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Upload bytes, replacing any existing object, and return its URL."""
        bucket = self.client.storage.from_(self.bucket)
        bucket.upload(
            path,
            data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        return bucket.get_public_url(path)

    def delete(self, path: str) -> None:
        self.client.storage.from_(self.bucket).remove([path])
