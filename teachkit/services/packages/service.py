"""
Package catalog: recording finished generations, listing them, and the
per-file download capability check.
"""
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from teachkit.core.errors import Forbidden, InvalidArgument, NotFound
from teachkit.models.package import Package
from teachkit.services.generation.naming import content_type_for, derive_generation_id
from teachkit.storage.base import Storage, validate_filename
from teachkit.utils.metrics import package_record_failures_total

logger = logging.getLogger(__name__)


class PackageService:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        user_id: str,
        payment_id: str | None,
        topic: str,
        generation_id: str,
        files: dict[str, Any],
    ) -> Package | None:
        """
        Insert the package row. Best-effort: on failure the artifacts already exist,
        so the inconsistency is logged and None is returned instead of raising.
        """
        package = Package(
            user_id=user_id,
            payment_id=payment_id,
            topic=topic,
            file_id=generation_id,
            files=files,
        )
        try:
            self.db.add(package)
            self.db.commit()
            self.db.refresh(package)
        except SQLAlchemyError as e:
            self.db.rollback()
            package_record_failures_total.inc()
            logger.error(
                "package_record_failed",
                extra={
                    "user_id": user_id,
                    "payment_id": payment_id,
                    "generation_id": generation_id,
                    "error": str(e),
                },
            )
            return None
        logger.info(
            "package_recorded",
            extra={"user_id": user_id, "package_id": package.id, "generation_id": generation_id},
        )
        return package

    def list_for_user(self, user_id: str) -> list[Package]:
        return (
            self.db.query(Package)
            .filter(Package.user_id == user_id)
            .order_by(Package.created_at.desc(), Package.id.desc())
            .all()
        )

    def owns_generation(self, user_id: str, generation_id: str) -> bool:
        return (
            self.db.query(Package.id)
            .filter(Package.user_id == user_id, Package.file_id == generation_id)
            .first()
            is not None
        )

    def authorize_download(self, user_id: str, filename: str) -> str:
        """
        Check that ``filename`` belongs to a package the user owns.
        Returns the derived generation id. File existence alone never grants access.
        """
        try:
            validate_filename(filename)
        except ValueError:
            logger.warning("download_invalid_filename", extra={"user_id": user_id, "filename": filename})
            raise InvalidArgument("Invalid filename") from None

        generation_id = derive_generation_id(filename)
        if not generation_id or not self.owns_generation(user_id, generation_id):
            logger.warning(
                "download_forbidden",
                extra={"user_id": user_id, "filename": filename, "generation_id": generation_id},
            )
            raise Forbidden(detail={"filename": filename, "generation_id": generation_id})
        return generation_id

    def download(self, user_id: str, filename: str, storage: Storage) -> tuple[bytes, str]:
        """Authorized read of one artifact; returns (content, content_type)."""
        self.authorize_download(user_id, filename)
        try:
            content = storage.read(filename)
        except FileNotFoundError:
            raise NotFound("File not found") from None
        return content, content_type_for(filename)
