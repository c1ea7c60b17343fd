from . import auth, blogs, categories, cloudinary, contact, impact, rescue, testimonials, videos, visitor, volunteers
from .gallery import build_gallery_router
from ..images import MAX_IMAGES, MAX_IMAGES_WITH_FILE
from ..schemas import Award, Photo

photos = build_gallery_router(
    model=Photo,
    collection="photo",
    category_type="photo",
    label="Photo",
    prefix="/api/photos",
    max_images=MAX_IMAGES,
    max_images_on_update=MAX_IMAGES_WITH_FILE,
    title_max_length=100,
)

awards = build_gallery_router(
    model=Award,
    collection="award",
    category_type="award",
    label="Award",
    prefix="/api/awards",
    max_images=MAX_IMAGES,
    max_images_on_update=MAX_IMAGES,
    title_max_length=200,
)

ROUTERS = (
    auth.router,
    categories.router,
    photos,
    awards,
    videos.router,
    blogs.router,
    rescue.router,
    testimonials.router,
    contact.router,
    volunteers.router,
    visitor.router,
    impact.router,
    cloudinary.router,
)
