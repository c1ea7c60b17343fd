import logging

from fastapi import APIRouter, Body, Depends

from ..errors import UpstreamFailure
from ..schemas import AdminIdentity
from ..security import get_current_admin
from ..storage import IMAGE_FOLDER, BlobStorage, get_storage

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cloudinary", tags=["cloudinary"])


@router.post("/signature")
def signature(folder: str = Body(IMAGE_FOLDER, embed=True), storage: BlobStorage = Depends(get_storage),
              admin: AdminIdentity = Depends(get_current_admin)):
    """Signed parameters for a direct browser upload."""
    return {"success": True, "data": storage.sign_upload(folder)}


@router.delete("/{public_id:path}")
def delete_blob(public_id: str, storage: BlobStorage = Depends(get_storage),
                admin: AdminIdentity = Depends(get_current_admin)):
    outcome = storage.destroy(public_id)
    if not outcome.ok:
        raise UpstreamFailure(f"Failed to delete image: {outcome.error or outcome.result}")
    log.info("Image %s deleted by %s", public_id, admin.email)
    return {"success": True, "message": "Image deleted successfully"}
