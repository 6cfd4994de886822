from datetime import timedelta
from pathlib import Path
from typing import Optional

from minio import Minio

from reelsynth.config import get_settings


class StorageService:
    """
    Object storage for published videos and thumbnails, backed by MinIO / S3.

    Everything lives in the output bucket; access is only through signed URLs.
    """

    def __init__(self, client: Optional[Minio] = None):
        self.settings = get_settings()
        self.bucket = self.settings.minio.bucket_output

        if client is None:
            # Extract region from endpoint if it's AWS S3
            # e.g., s3.us-east-2.amazonaws.com -> us-east-2
            endpoint = self.settings.minio.endpoint
            region = None
            if "amazonaws.com" in endpoint:
                parts = endpoint.split(".")
                if len(parts) >= 3 and parts[0] == "s3":
                    region = parts[1]
                    print(f"🔧 Detected AWS S3 region: {region}", flush=True)

            client = Minio(
                endpoint,
                access_key=self.settings.minio.access_key,
                secret_key=self.settings.minio.secret_key,
                secure=self.settings.minio.secure,
                region=region,
            )
        self.client = client

        # Signed URLs are generated against the internal endpoint; rewrite for browsers.
        self.public_endpoint = self.settings.minio.public_endpoint or self.settings.minio.endpoint

    def ensure_buckets(self) -> bool:
        """Create the output bucket if missing. Returns False if storage is unreachable."""
        print(f"🔧 S3 Config: endpoint={self.settings.minio.endpoint}, secure={self.settings.minio.secure}", flush=True)
        try:
            if not self.client.bucket_exists(self.bucket):
                print(f"📦 Creating bucket: {self.bucket}", flush=True)
                self.client.make_bucket(self.bucket)
            print(f"✅ Bucket accessible: {self.bucket}", flush=True)
            return True
        except Exception as e:
            # Keep the API up; publishing will fail with a StorageError until storage is reachable.
            print(f"⚠️ Storage initialization failed (MinIO/S3 unreachable?): {e}", flush=True)
            return False

    def upload_file(
        self,
        object_name: str,
        file_path: str,
        content_type: Optional[str] = None
    ) -> str:
        """
        Upload a local file to the output bucket.

        Returns:
            Object name in storage
        """
        if content_type is None:
            content_type = self._guess_content_type(file_path)

        self.client.fput_object(
            self.bucket,
            object_name,
            file_path,
            content_type=content_type
        )
        return object_name

    def get_presigned_url(self, object_name: str, expires_seconds: int = 3600) -> str:
        """
        Get a presigned GET URL for temporary access to an object.
        """
        url = self.client.presigned_get_object(
            self.bucket,
            object_name,
            expires=timedelta(seconds=expires_seconds)
        )

        internal_endpoint = self.settings.minio.endpoint
        if self.public_endpoint != internal_endpoint:
            url = url.replace(f"http://{internal_endpoint}", f"http://{self.public_endpoint}")
            url = url.replace(f"https://{internal_endpoint}", f"https://{self.public_endpoint}")
        return url

    def delete_object(self, object_name: str) -> None:
        self.client.remove_object(self.bucket, object_name)

    def _guess_content_type(self, file_path: str) -> str:
        """Guess content type from file extension."""
        ext = Path(file_path).suffix.lower()

        content_types = {
            ".mp4": "video/mp4",
            ".mp3": "audio/mpeg",
            ".jpg": "image/jpeg",
            ".jpeg": "image/jpeg",
            ".png": "image/png",
            ".json": "application/json"
        }

        return content_types.get(ext, "application/octet-stream")
