"""FastAPI application for the pandoc conversion service."""

import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Callable, List, Optional, Tuple

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .batch import ARCHIVE_NAME, BatchItem, build_archive, convert_batch
from .config import Settings, get_settings
from .formats import INPUT_FORMATS, OUTPUT_FORMATS, guess_input_format, output_extension
from .pandoc import (
    ConversionError,
    ConversionTimeoutError,
    EngineUnavailableError,
    PandocError,
    UnsupportedFormatError,
    check_pandoc,
    convert_file,
    validate_formats,
)
from .schemas import ConversionOptions, FormatCatalog, InvalidOptionsError, PandocStatus
from .storage import RequestScratch, UploadError, UploadTooLargeError, original_stem

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("pandoc_service.main")

INSTALL_URL = "https://pandoc.org/installing.html"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    settings.ensure_directories()
    try:
        version = await run_in_threadpool(check_pandoc, settings.pandoc_bin)
        logger.info("Pandoc detected: %s", version)
    except EngineUnavailableError as exc:
        logger.warning("%s", exc)
        logger.warning("Please install Pandoc from %s", INSTALL_URL)
    yield


app = FastAPI(title="Pandoc Conversion Service", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Converted-Count", "X-Failed-Count"],
)


# ---------------------------------------------------------------------------
# Responses and error bodies
# ---------------------------------------------------------------------------

class CleanupFileResponse(FileResponse):
    """FileResponse that runs ``cleanup`` once the body is sent or the send fails."""

    def __init__(self, path, *, cleanup: Callable[[], None], **kwargs):
        super().__init__(path, **kwargs)
        self._cleanup = cleanup

    async def __call__(self, scope, receive, send):
        try:
            await super().__call__(scope, receive, send)
        except Exception as exc:
            logger.error("Download error: %s", exc)
            raise
        finally:
            self._cleanup()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _status_for(exc: Exception) -> int:
    if isinstance(exc, (UnsupportedFormatError, InvalidOptionsError)):
        return 400
    if isinstance(exc, UploadTooLargeError):
        return 413
    if isinstance(exc, UploadError):
        return 400
    if isinstance(exc, EngineUnavailableError):
        return 503
    if isinstance(exc, ConversionTimeoutError):
        return 504
    return 500


@app.exception_handler(PandocError)
@app.exception_handler(UploadError)
@app.exception_handler(InvalidOptionsError)
async def conversion_error_handler(request: Request, exc: Exception):
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("Conversion error: %s", exc)
    return _error(status_code, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    return _error(400, message)


def _resolve_formats(
    from_format: Optional[str], to_format: Optional[str], filename: Optional[str]
) -> Tuple[str, str]:
    if not to_format:
        raise UnsupportedFormatError("No output format specified")
    if not from_format:
        from_format = guess_input_format(filename)
    validate_formats(from_format, to_format)
    return from_format, to_format


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get(
    "/api/check-pandoc",
    response_model=PandocStatus,
    response_model_exclude_none=True,
)
async def api_check_pandoc(settings: Settings = Depends(get_settings)):
    try:
        version = await run_in_threadpool(check_pandoc, settings.pandoc_bin)
    except EngineUnavailableError as exc:
        return PandocStatus(available=False, error=str(exc))
    return PandocStatus(available=True, version=version)


@app.get("/api/formats", response_model=FormatCatalog)
async def api_formats():
    return FormatCatalog(input=INPUT_FORMATS, output=OUTPUT_FORMATS)


@app.post("/api/convert")
async def api_convert(
    file: Optional[UploadFile] = File(None),
    from_format: Optional[str] = Form(None, alias="fromFormat"),
    to_format: Optional[str] = Form(None, alias="toFormat"),
    options: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
):
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    from_format, to_format = _resolve_formats(from_format, to_format, file.filename)
    parsed_options = ConversionOptions.parse_field(options)
    extension = output_extension(to_format)

    scratch = RequestScratch(settings)
    try:
        input_path = await scratch.save_upload(file)
        output_path = scratch.output_path(file.filename, extension)
        await run_in_threadpool(
            convert_file,
            input_path, output_path, from_format, to_format, parsed_options,
            settings=settings, media_dir=scratch.media_dir,
        )
        if not output_path.is_file():
            raise ConversionError("Conversion failed: pandoc produced no output file")
    except Exception:
        scratch.cleanup()
        raise

    logger.info("Converted %s (%s -> %s)", file.filename, from_format, to_format)
    return CleanupFileResponse(
        output_path,
        filename=f"{original_stem(file.filename)}{extension}",
        cleanup=scratch.cleanup,
    )


@app.post("/api/convert-batch")
async def api_convert_batch(
    files: Optional[List[UploadFile]] = File(None),
    from_format: Optional[str] = Form(None, alias="fromFormat"),
    to_format: Optional[str] = Form(None, alias="toFormat"),
    options: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
):
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > settings.max_batch_files:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files: at most {settings.max_batch_files} per batch",
        )

    from_format, to_format = _resolve_formats(from_format, to_format, files[0].filename)
    parsed_options = ConversionOptions.parse_field(options)
    extension = output_extension(to_format)

    scratch = RequestScratch(settings)
    try:
        items = []
        for upload in files:
            input_path = await scratch.save_upload(upload)
            items.append(BatchItem(
                original_name=upload.filename or "document",
                input_path=input_path,
                output_path=scratch.output_path(upload.filename, extension),
            ))

        converter = partial(convert_file, settings=settings, media_dir=scratch.media_dir)
        results = await run_in_threadpool(
            convert_batch, items, from_format, to_format, parsed_options,
            convert=converter,
        )
        archive_path = scratch.archive_path()
        converted = await run_in_threadpool(build_archive, results, archive_path, to_format)
    except Exception:
        scratch.cleanup()
        raise

    failed = len(results) - converted
    if failed:
        logger.warning("Batch: %d of %d files failed to convert", failed, len(results))
    return CleanupFileResponse(
        archive_path,
        filename=ARCHIVE_NAME,
        media_type="application/zip",
        headers={"X-Converted-Count": str(converted), "X-Failed-Count": str(failed)},
        cleanup=scratch.cleanup,
    )


def run() -> None:
    import uvicorn

    settings = get_settings()
    logger.info("Pandoc conversion server running on http://localhost:%d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
