from __future__ import annotations

import os
import tempfile
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    Header,
    HTTPException,
    Query,
    Request,
    UploadFile,
)
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware
from pydantic import BaseModel
import logging

load_dotenv()

from core import (
    correct_track,
    import_library,
    process_playlist,
    save_api_keys,
    search_marketplace,
)
from lib.auth import TokenIdentityProvider, verify_owner
from lib.errors import PipelineError
from lib.store import DurableStore, InMemoryStore

# Basic logging configuration to ensure logger outputs appear in the terminal
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn.error")
logger.setLevel(logging.INFO)


# =========================
# Pydantic models
# =========================

class ProcessPlaylistBody(BaseModel):
    url: str
    user_id: str


class TrackSummaryModel(BaseModel):
    id: str
    video_title: str
    detected_artist: Optional[str] = None
    detected_title: str
    detected_remix: Optional[str] = None
    confidence: int
    owned: bool
    status: str


class ProcessPlaylistResponse(BaseModel):
    job_id: str
    track_count: int
    tracks: List[TrackSummaryModel]
    perf: Optional[Dict[str, int]] = None


class SearchMarketplaceBody(BaseModel):
    artist: str
    title: str
    remix: Optional[str] = None
    user_id: str
    track_id: Optional[str] = None
    refresh: bool = False


class ListingModel(BaseModel):
    provider_name: str
    url: Optional[str] = None
    price: Optional[str] = None
    condition_or_format: Optional[str] = None
    available: bool


class SearchMarketplaceResponse(BaseModel):
    listings: List[ListingModel]
    searched: str
    meta: Optional[Dict[str, Any]] = None


class CorrectTrackBody(BaseModel):
    user_id: str
    field: str
    value: Optional[str] = None


class ApiKeysBody(BaseModel):
    user_id: str
    youtube_api_key: Optional[str] = None
    discogs_api_key: Optional[str] = None
    discogs_api_secret: Optional[str] = None


# =========================
# FastAPI app & CORS
# =========================

app = FastAPI(
    title="Crate Digger",
    version="1.0.0",
)

# Add GZip middleware for response compression (reduces payload size for large JSON)
app.add_middleware(GZipMiddleware, minimum_size=1000)


def _declared_content_length(raw: Optional[str]) -> Optional[int]:
    """Content-Length as int; None when absent or not a plain digit string."""
    if not raw or not raw.strip().isdecimal():
        return None
    return int(raw.strip())


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method in ("POST", "PUT", "PATCH"):
            content_length = _declared_content_length(request.headers.get("content-length"))
            if content_length is not None and content_length > 25 * 1024 * 1024:  # 25MB ceiling
                logger.warning(f"[RequestSizeLimit] Rejected oversized request: {content_length} bytes from {request.client}")
                return JSONResponse(
                    status_code=413,
                    content={"detail": "Request body too large (max 25MB)"}
                )
        return await call_next(request)


app.add_middleware(RequestSizeLimitMiddleware)

# 最大アップロードサイズ（バイト） - デフォルト 20MB（フロントと合わせて）
MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", 20 * 1024 * 1024))

# デフォルトの許可オリジン
default_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]

# 環境変数 ALLOWED_ORIGINS があればそれを優先（カンマ区切り）
env_origins = os.getenv("ALLOWED_ORIGINS")
if env_origins:
    origins = [o.strip() for o in env_origins.split(",") if o.strip()]
else:
    origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.store = InMemoryStore()
app.state.identity = TokenIdentityProvider()


@app.on_event("startup")
def _log_startup():
    logger.info("crate-digger: startup event triggered")


# =========================
# Dependencies
# =========================

def get_store(request: Request) -> DurableStore:
    return request.app.state.store


def get_authenticated_user(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> str:
    user_id = request.app.state.identity.authenticate(authorization)
    if not user_id:
        raise HTTPException(status_code=401, detail="User must be authenticated")
    return user_id


def _to_http_error(e: PipelineError) -> HTTPException:
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": str(e),
            "type": e.__class__.__name__,
            "meta": e.meta,
        },
    )


# =========================
# Health check
# =========================

@app.get("/health", tags=["system"])
def health() -> Dict[str, Any]:
    return {
        "ok": True,
        "status": "ok",
        "build_commit": os.getenv("RENDER_GIT_COMMIT", "local")[:7],
    }


@app.get("/", tags=["system"])
def root() -> Dict[str, Any]:
    return {"ok": True, "status": "ok"}


# =========================
# Endpoints
# =========================

@app.post("/api/process-playlist", response_model=ProcessPlaylistResponse)
async def api_process_playlist(
    body: ProcessPlaylistBody,
    auth_user: str = Depends(get_authenticated_user),
    store: DurableStore = Depends(get_store),
):
    """
    YouTube プレイリストを取り込み、各動画を抽出・所有判定して保存する。
    """
    logger.info(f"[api/process-playlist] user={body.user_id} url={body.url}")
    try:
        return await process_playlist(body.url, body.user_id, auth_user, store)
    except PipelineError as e:
        logger.error(f"[api/process-playlist] {e.__class__.__name__} for url={body.url}: {e} meta={e.meta}")
        raise _to_http_error(e)


@app.post("/api/search-marketplace", response_model=SearchMarketplaceResponse)
async def api_search_marketplace(
    body: SearchMarketplaceBody,
    auth_user: str = Depends(get_authenticated_user),
    store: DurableStore = Depends(get_store),
):
    """
    Discogs / デジタルストアを横断検索。track_id があれば結果をトラックに保存。
    """
    try:
        return await search_marketplace(
            body.artist,
            body.title,
            body.remix,
            body.user_id,
            auth_user,
            store,
            track_id=body.track_id,
            refresh=body.refresh,
        )
    except PipelineError as e:
        logger.error(f"[api/search-marketplace] {e.__class__.__name__}: {e} meta={e.meta}")
        raise _to_http_error(e)


@app.get("/api/tracks")
async def api_list_tracks(
    user_id: str = Query(..., description="Owner user id"),
    job_id: Optional[str] = Query(None, description="Filter by playlist job"),
    auth_user: str = Depends(get_authenticated_user),
    store: DurableStore = Depends(get_store),
):
    try:
        owner = verify_owner(user_id, auth_user)
    except PipelineError as e:
        raise _to_http_error(e)
    tracks = await store.list_tracks(owner, job_id=job_id)
    tracks.sort(key=lambda t: t.get("created_at") or "")
    return {"tracks": tracks}


@app.patch("/api/tracks/{track_id}")
async def api_correct_track(
    track_id: str,
    body: CorrectTrackBody,
    auth_user: str = Depends(get_authenticated_user),
    store: DurableStore = Depends(get_store),
):
    try:
        return await correct_track(track_id, body.field, body.value, body.user_id, auth_user, store)
    except PipelineError as e:
        raise _to_http_error(e)


@app.put("/api/settings/api-keys")
async def api_save_api_keys(
    body: ApiKeysBody,
    auth_user: str = Depends(get_authenticated_user),
    store: DurableStore = Depends(get_store),
):
    try:
        configured = await save_api_keys(
            store,
            body.user_id,
            auth_user,
            youtube_api_key=body.youtube_api_key,
            discogs_api_key=body.discogs_api_key,
            discogs_api_secret=body.discogs_api_secret,
        )
    except PipelineError as e:
        raise _to_http_error(e)
    return {"configured": configured}


@app.post("/api/library/upload")
async def api_library_upload(
    user_id: str = Form(..., description="Owner user id"),
    file: UploadFile = File(..., description="Rekordbox collection XML"),
    auth_user: str = Depends(get_authenticated_user),
    store: DurableStore = Depends(get_store),
):
    """
    Rekordbox XML をアップロードして所有ライブラリとして取り込む。
    """
    if file.content_type not in ("text/xml", "application/xml", "text/plain"):
        raise HTTPException(status_code=400, detail="XML ファイルをアップロードしてください。")

    try:
        contents = await file.read()
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"ファイル読み込みに失敗しました: {e}")

    if not contents:
        raise HTTPException(status_code=400, detail="空のファイルです。")
    if len(contents) > MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=413, detail=f"ファイルが大きすぎます（上限 {MAX_UPLOAD_SIZE} バイト）。")

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(delete=False, suffix=".xml") as tmp:
            tmp.write(contents)
            tmp_path = tmp.name
        return await import_library(tmp_path, user_id, auth_user, store)
    except PipelineError as e:
        raise _to_http_error(e)
    finally:
        # 後始末
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError as e:
                logger.warning(f"[api/library/upload] failed to remove temp file {tmp_path}: {e}")


# =========================
# Local dev entrypoint
# =========================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
