"""
Photo portfolio – rendition service (FastAPI + SQLite)

Quick start
-----------
1) python -m venv .venv && source .venv/bin/activate  # or .venv\\Scripts\\activate on Windows
2) pip install -e .
3) python app.py  # auto-writes templates/static and DB
4) Open http://localhost:8001/dashboard

Notes
-----
• Metadata lives in ./portfolio.db; renditions under ./public/photos/<imageId>/<size>.webp.
• Renditions are served as-is at /photos/<imageId>/<size>.webp for the front-end site.
• Requests that act for an owner carry an X-Owner-Id header set by the auth layer.
"""

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

import config
from database import init_db
from errors import NotFoundError, PortfolioError
from routes import (
    add_image_size,
    add_photo_to_gallery,
    bulk_add_to_gallery,
    bulk_delete_photos,
    bulk_remove_from_gallery,
    dashboard,
    delete_image_size,
    delete_photo,
    get_image_sizes,
    list_photos,
    photo_count,
    photo_detail,
    public_galleries,
    public_gallery_photos,
    public_search,
    remove_photo_from_gallery,
    reorder_gallery,
    storage_usage,
    update_photo,
    upload_photo,
)
from templates_static import ensure_assets

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("portfolio")

# Create FastAPI app
app = FastAPI(title="Photo Portfolio")

# Ensure templates, static files and the rendition root exist
ensure_assets()
config.PHOTOS_DIR.mkdir(parents=True, exist_ok=True)

# Mount static files
app.mount("/static", StaticFiles(directory=str(config.STATIC_DIR)), name="static")
app.mount(
    config.PHOTOS_URL_PREFIX,
    StaticFiles(directory=str(config.PHOTOS_DIR)),
    name="photos",
)


@app.exception_handler(PortfolioError)
async def portfolio_error_handler(request: Request, exc: PortfolioError):
    """Map domain errors to HTTP; internal details stay in the log."""
    if exc.public:
        body = {"detail": exc.message}
        if isinstance(exc, NotFoundError) and exc.missing_ids:
            body["missing_ids"] = exc.missing_ids
    else:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r} ({exc.__cause__!r})")
        body = {"detail": "Internal server error"}
    return JSONResponse(body, status_code=exc.status_code)


# Initialize database
init_db()

# Routes
app.get("/dashboard", response_class=HTMLResponse)(dashboard)

# Bulk operations - MUST come before {photo_id} routes to avoid route conflicts
app.post("/api/photos/bulk/delete")(bulk_delete_photos)
app.post("/api/photos/bulk/add_to_gallery")(bulk_add_to_gallery)
app.post("/api/photos/bulk/remove_from_gallery")(bulk_remove_from_gallery)
app.get("/api/photos/count")(photo_count)

app.post("/api/photos")(upload_photo)
app.get("/api/photos")(list_photos)
app.get("/api/photos/{photo_id}")(photo_detail)
app.put("/api/photos/{photo_id}")(update_photo)
app.delete("/api/photos/{photo_id}")(delete_photo)

# Gallery membership
app.post("/api/galleries/{gallery_id}/photos")(add_photo_to_gallery)
app.put("/api/galleries/{gallery_id}/photos/order")(reorder_gallery)
app.delete("/api/galleries/{gallery_id}/photos/{photo_id}")(remove_photo_from_gallery)

# Image size settings
app.get("/api/settings/image_sizes")(get_image_sizes)
app.post("/api/settings/image_sizes")(add_image_size)
app.delete("/api/settings/image_sizes/{size_name}")(delete_image_size)

app.get("/api/storage/usage")(storage_usage)

# Public read-only API for the front-end site
app.get("/api/public/galleries")(public_galleries)
app.get("/api/public/galleries/{gallery_id}/photos")(public_gallery_photos)
app.get("/api/public/photos/search")(public_search)


if __name__ == "__main__":
    # Allow `python app.py 8000`
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 8001
    print(f"→ Open http://localhost:{port}/dashboard")
    import uvicorn

    uvicorn.run("app:app", host="127.0.0.1", port=port, reload=True)
