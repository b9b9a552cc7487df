import base64
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import listings
from config import get_settings
from cors import AllowlistCORSMiddleware
from database import close_db, ensure_indexes, get_db
from entries import build_router
from schemas import KINDS

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        ensure_indexes()
    except PyMongoError as e:
        logger.error("Could not create urlEnd indexes: %s", e)
    yield
    close_db()


app = FastAPI(title="CPM Inventory API", lifespan=lifespan)

app.add_middleware(AllowlistCORSMiddleware, allow_origins=get_settings().allowed_origins)


# Every error body carries a "message" field
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else first.get("msg", "Invalid request")
    return JSONResponse({"message": message}, status_code=400)


# Root and health
@app.get("/")
def read_root():
    return {"message": "CPM Inventory backend running"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["database"] = "✅ Available"
        response["database_url"] = "✅ Set" if get_settings().database_url else "❌ Not Set"
        response["database_name"] = db.name
        response["collections"] = db.list_collection_names()
        response["connection_status"] = "Connected"
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Image upload - returns a data URL to store as imageUrl
@app.post("/api/upload")
async def upload_image(file: UploadFile = File(...)):
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    # Infer mime type from filename, fallback to image/jpeg
    mime = "image/jpeg"
    fname = (file.filename or "").lower()
    if fname.endswith(".png"):
        mime = "image/png"
    elif fname.endswith(".gif"):
        mime = "image/gif"
    elif fname.endswith(".webp"):
        mime = "image/webp"
    b64 = base64.b64encode(content).decode("utf-8")
    return {"url": f"data:{mime};base64,{b64}"}


for kind_name in KINDS:
    app.include_router(build_router(kind_name))
app.include_router(listings.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
