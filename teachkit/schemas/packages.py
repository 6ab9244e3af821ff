from datetime import datetime

from teachkit.schemas._base import CamelModel
from teachkit.schemas.generation import PackageFiles


class PackageOut(CamelModel):
    id: str
    topic: str
    generation_id: str
    files: PackageFiles
    created_at: datetime

    @classmethod
    def from_package(cls, package) -> "PackageOut":
        return cls(
            id=package.id,
            topic=package.topic,
            generation_id=package.file_id,
            files=PackageFiles.model_validate(package.files or {}),
            created_at=package.created_at,
        )


class PackageListOut(CamelModel):
    packages: list[PackageOut]
