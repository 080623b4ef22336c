# shopflow/core/storage_utils.py
import uuid

from shopflow.core.config import get_settings
from shopflow.core.supabase_client import supabase_admin

settings = get_settings()


def upload_to_storage(path: str, file_bytes: bytes, content_type: str) -> str:
    """
    Upload raw bytes to Supabase Storage and return the public URL.

    An existing object at `path` is overwritten ('upsert').

    Args:
        path: object path inside the bucket,
              e.g. "products/<product_id>/<uuid>.png"
        file_bytes: file content.
        content_type: MIME type stored with the object.
    """
    bucket = supabase_admin().storage.from_(settings.STORAGE_BUCKET)
    bucket.upload(
        path,
        file_bytes,
        {"upsert": "true", "content-type": content_type},
    )
    return bucket.get_public_url(path)


def delete_from_storage(path: str) -> None:
    """Delete an object by its path relative to the bucket."""
    supabase_admin().storage.from_(settings.STORAGE_BUCKET).remove([path])


def extract_path_from_public_url(url: str) -> str | None:
    """
    Given a public URL, extract the object path relative to the bucket.

    Example:
        https://<proj>.supabase.co/storage/v1/object/public/product-images/products/p/a.png
        -> 'products/p/a.png'

    Returns None for URLs outside the bucket (e.g. externally hosted images).
    """
    marker = f"/storage/v1/object/public/{settings.STORAGE_BUCKET}/"
    idx = url.find(marker)
    if idx == -1:
        return None
    return url[idx + len(marker) :]


def delete_public_url(url: str) -> None:
    """
    Delete a file by its public URL.
    No-op if the URL does not belong to this bucket.
    """
    path = extract_path_from_public_url(url)
    if path:
        delete_from_storage(path)


def generate_filename(ext: str) -> str:
    """Random filename like "<uuid4>.png"."""
    return f"{uuid.uuid4()}.{ext}"
