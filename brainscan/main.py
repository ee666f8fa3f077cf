import asyncio
import logging
import mimetypes
from contextlib import asynccontextmanager

import numpy as np
from fastapi import FastAPI, File, Header, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from brainscan import config
from brainscan.classifiers import HeuristicClassifier, SyntheticClassifier
from brainscan.database import make_engine, make_session_factory
from brainscan.exceptions import AuthError, BrainScanError, UploadValidationError
from brainscan.model import ModelLoader
from brainscan.pipeline import AnalysisPipeline
from brainscan.preprocessing import validate_upload
from brainscan.report import FALLBACK_NOTICE, AnalysisResult, create_pdf
from brainscan.session import SessionService
from brainscan.storage import LocalObjectStore, ScanArchive, ScanHistoryStore

logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    email: str
    password: str


def error_response(e):
    status = getattr(e, "status_code", 500)
    return JSONResponse(status_code=status, content={"error": str(e)})


def bearer_token(authorization):
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


def scan_to_dict(record):
    data = AnalysisResult.from_record(record).to_dict()
    data.update(
        {
            "id": record.id,
            "created_at": record.created_at.isoformat() if record.created_at else None,
            "image_url": f"/scans/{record.id}/image",
            "file_name": record.file_name,
            "file_size": record.file_size,
        }
    )
    return data


def create_app(
    database_url=None,
    upload_dir=None,
    loader=None,
    session_factory=None,
    preload_model=True,
    max_upload_size=None,
):
    # ---------------- SERVICES ---------------- #

    if session_factory is None:
        session_factory = make_session_factory(make_engine(database_url or config.DATABASE_URL))

    if loader is None:
        rng = np.random.default_rng(config.HEURISTIC_SEED)
        loader = ModelLoader(
            config.MODEL_PATH,
            heuristic=HeuristicClassifier(SyntheticClassifier(rng)),
        )

    pipeline = AnalysisPipeline(loader, max_upload_size=max_upload_size)
    sessions = SessionService(session_factory)
    objects = LocalObjectStore(upload_dir or config.UPLOAD_DIR)
    archive = ScanArchive(objects, ScanHistoryStore(session_factory))

    @asynccontextmanager
    async def lifespan(app):
        objects.root.mkdir(parents=True, exist_ok=True)
        task = None
        if preload_model:
            # Races the first /predict request; both share the same load
            task = asyncio.create_task(loader.ensure_loaded_async())
        yield
        if task is not None:
            await task

    # ---------------- APP SETUP ---------------- #

    app = FastAPI(title="Brain Tumor Detection API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.loader = loader
    app.state.pipeline = pipeline
    app.state.sessions = sessions
    app.state.archive = archive

    def require_user(authorization):
        user = sessions.current_user(bearer_token(authorization))
        if user is None:
            raise AuthError("Authentication required")
        return user

    # ---------------- AUTH ---------------- #

    @app.post("/auth/signup")
    def signup(body: Credentials):
        try:
            user = sessions.sign_up(body.email, body.password)
            return {"id": user.id, "email": user.email}
        except BrainScanError as e:
            return error_response(e)

    @app.post("/auth/signin")
    def signin(body: Credentials):
        try:
            token = sessions.sign_in(body.email, body.password)
            return {"access_token": token, "token_type": "bearer"}
        except BrainScanError as e:
            return error_response(e)

    @app.post("/auth/signout")
    def signout(authorization: str = Header(None)):
        try:
            sessions.sign_out(bearer_token(authorization))
            return {"success": True}
        except BrainScanError as e:
            return error_response(e)

    @app.get("/auth/me")
    def me(authorization: str = Header(None)):
        try:
            user = require_user(authorization)
            return {"id": user.id, "email": user.email}
        except BrainScanError as e:
            return error_response(e)

    # ---------------- MODEL ---------------- #

    @app.get("/model/status")
    def model_status():
        return loader.status()

    # ---------------- PREDICT ENDPOINT ---------------- #

    @app.post("/predict")
    async def predict(file: UploadFile = File(...), authorization: str = Header(None)):
        try:
            logger.info("Predict API called for %s", file.filename)

            # Size and type are checked before the body is read into memory
            if file.size is not None:
                validate_upload(file.content_type, file.size, pipeline.max_upload_size)

            image_bytes = await file.read()
            result = await run_in_threadpool(pipeline.analyze, image_bytes, file.content_type)
        except UploadValidationError as e:
            logger.warning("Rejected upload %s: %s", file.filename, e)
            return error_response(e)
        except BrainScanError as e:
            logger.error("Analysis failed: %s", e)
            return error_response(e)
        except Exception as e:
            logger.exception("Unexpected analysis error")
            return JSONResponse(status_code=500, content={"error": str(e)})

        response = {"result": result.to_dict(), "saved": False}
        if result.fallback_used:
            response["notice"] = FALLBACK_NOTICE

        # ---------- AUTO-SAVE ----------
        user = await run_in_threadpool(sessions.current_user, bearer_token(authorization))
        if user is not None:
            try:
                record_id, _ = await run_in_threadpool(
                    archive.save, user.id, image_bytes, file.filename, result
                )
                response.update({"saved": True, "scan_id": record_id})
            except BrainScanError as e:
                logger.error("Save scan failed: %s", e)
                response["save_error"] = str(e)

        return response

    # ---------------- SCAN HISTORY ---------------- #

    @app.get("/scans")
    def list_scans(
        limit: int = Query(config.HISTORY_LIMIT, ge=1, le=config.MAX_HISTORY_LIMIT),
        authorization: str = Header(None),
    ):
        try:
            user = require_user(authorization)
            return {"scans": [scan_to_dict(r) for r in archive.history(user.id, limit)]}
        except BrainScanError as e:
            return error_response(e)

    @app.delete("/scans/{scan_id}")
    def delete_scan(scan_id: int, authorization: str = Header(None)):
        try:
            user = require_user(authorization)
            archive.delete(user.id, scan_id)
            return {"success": True}
        except BrainScanError as e:
            return error_response(e)

    @app.get("/scans/{scan_id}/image")
    def scan_image(scan_id: int, authorization: str = Header(None)):
        try:
            user = require_user(authorization)
            record = archive.records.get(scan_id, user.id)
            data = archive.objects.open(record.image_url)
            media_type = mimetypes.guess_type(record.file_name or "")[0] or "application/octet-stream"
            return Response(content=data, media_type=media_type)
        except BrainScanError as e:
            return error_response(e)

    @app.get("/scans/{scan_id}/report")
    def scan_report(scan_id: int, authorization: str = Header(None)):
        try:
            user = require_user(authorization)
            record = archive.records.get(scan_id, user.id)
            pdf = create_pdf(
                AnalysisResult.from_record(record),
                file_name=record.file_name,
                created_at=record.created_at,
                report_id=record.id,
            )
            return Response(
                content=pdf,
                media_type="application/pdf",
                headers={"Content-Disposition": f'attachment; filename="scan_{record.id}_report.pdf"'},
            )
        except BrainScanError as e:
            return error_response(e)

    return app


def run():
    import uvicorn

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(), host=config.HOST, port=config.PORT)
