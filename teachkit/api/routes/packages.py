from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from teachkit.api.deps import get_artifact_storage, get_current_user
from teachkit.db.session import get_db
from teachkit.models.user import User
from teachkit.schemas.packages import PackageListOut, PackageOut
from teachkit.services.packages.service import PackageService
from teachkit.storage.base import Storage

router = APIRouter(prefix="/api", tags=["packages"])


@router.get("/packages", response_model=PackageListOut)
def list_packages(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    packages = PackageService(db).list_for_user(user.id)
    return PackageListOut(packages=[PackageOut.from_package(p) for p in packages])


@router.get("/download")
def download(
    file: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: Storage = Depends(get_artifact_storage),
):
    content, content_type = PackageService(db).download(user.id, file, storage)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{file}"'},
    )
