"""
FastAPI main application for the Book Library API.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import create_access_token, get_current_user_id
from api.config import config as api_config
from api.models import (
    APIResponse, BookmarkRequest, ErrorResponse, HealthResponse, LoginRequest, RegisterRequest, TokenData
)
from catalog.bookmarks import BookmarkManager
from catalog.database import CatalogDatabase
from catalog.errors import CatalogError, ValidationError
from catalog.lifecycle import BookLifecycleManager, parse_book_create, parse_book_update
from catalog.models import BookFilterParams, BookListFilters, SearchScope, SortOrder, ToggleAction
from catalog.queries import BookQueryEngine
from catalog.storage import ALLOWED_BOOK_MIME_TYPES, FileStorage
from catalog.users import UserManager
from utilities.config import config
from utilities.logger import bind_request_context, clear_request_context, setup_logging

# Setup logging
logger = structlog.get_logger(__name__)

# Global services, populated on startup
catalog_db: Optional[CatalogDatabase] = None
file_storage: Optional[FileStorage] = None
query_engine: Optional[BookQueryEngine] = None
lifecycle_manager: Optional[BookLifecycleManager] = None
bookmark_manager: Optional[BookmarkManager] = None
user_manager: Optional[UserManager] = None

ERROR_STATUS = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "dependency_failure": status.HTTP_502_BAD_GATEWAY,
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global catalog_db, file_storage, query_engine, lifecycle_manager, bookmark_manager, user_manager

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Book Library API")

    try:
        catalog_db = CatalogDatabase(
            connection_url=config.mongodb_url,
            database_name=config.mongodb_database,
            users_collection=config.users_collection,
            books_collection=config.books_collection,
        )
        await catalog_db.connect()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    file_storage = FileStorage(config.get_storage_path(), config.storage_public_url)
    query_engine = BookQueryEngine(catalog_db.books, special_set_size=config.special_set_size)
    lifecycle_manager = BookLifecycleManager(catalog_db.books, file_storage)
    bookmark_manager = BookmarkManager(catalog_db.users, catalog_db.books)
    user_manager = UserManager(catalog_db.users, bcrypt_rounds=config.bcrypt_rounds)

    yield

    logger.info("Shutting down Book Library API")
    await catalog_db.disconnect()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    REST API for a book library catalog.

    ## Features

    * **Books**: Upload book files, browse, search, filter and curate the catalog
    * **Bookmarks**: Save books to your account and toggle them on and off
    * **Authentication**: Register and log in to receive a bearer token

    ## Authentication

    Bookmark endpoints require a token. Include it in the Authorization header:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)

app.mount("/uploads", StaticFiles(directory=config.storage_dir, check_dir=False), name="uploads")


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Bind request details to every log event and echo the request id."""
    request_id = bind_request_context(
        request.method, request.url.path, request.headers.get("X-Request-ID")
    )
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-ID"] = request_id
    return response


def respond(message: str, data: Any = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Wrap a result in the success envelope."""
    body = APIResponse(success=True, message=message, data=jsonable_encoder(data))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def require(service):
    """Fail with 503 when a service has not been initialised."""
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service not available"
        )
    return service


# Exception handlers
@app.exception_handler(CatalogError)
async def catalog_exception_handler(request, exc: CatalogError):
    """Map catalog errors to status codes."""
    status_code = ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(**exc.to_dict()).model_dump()
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail), kind="http_error").model_dump(),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request, exc: RequestValidationError):
    """Handle malformed requests."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(message="Invalid request", error=problems, kind=ValidationError.kind).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            message="Internal server error",
            error=str(exc) if api_config.debug else None,
        ).model_dump()
    )


async def read_book_file(file: UploadFile) -> bytes:
    """Check an uploaded book file's type and size and return its contents."""
    if file.content_type not in ALLOWED_BOOK_MIME_TYPES:
        raise ValidationError(
            "Only book file formats are allowed (PDF, EPUB, MOBI, AZW, TXT, RTF, DOC, DOCX)",
            detail=f"Received content type '{file.content_type}'"
        )
    data = await file.read()
    if len(data) > config.max_upload_bytes:
        raise ValidationError("File too large", detail=f"Maximum size is {config.max_upload_bytes} bytes")
    return data


async def discard_file(file_url: str) -> None:
    """Remove a freshly uploaded file whose catalog write failed."""
    try:
        await require(file_storage).delete(file_url)
    except Exception as e:
        logger.warning("Failed to discard uploaded file", file_url=file_url, error=str(e))


def form_fields(**fields) -> Dict[str, Any]:
    return {name: value for name, value in fields.items() if value is not None}


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if catalog_db:
        health_info = await catalog_db.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status
    )


@app.get("/stats", tags=["Health"])
async def get_stats(user_id: str = Depends(get_current_user_id)):
    """Get database statistics."""
    stats = await require(catalog_db).get_database_stats()
    return respond("Statistics retrieved successfully", stats)


# Auth endpoints
@app.post("/auth/register", tags=["Auth"], status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest):
    """Register a new user and issue a token."""
    user = await require(user_manager).register(payload.model_dump(exclude_none=True))
    token = create_access_token(user.id, user.role.value)
    return respond("User registered successfully", TokenData(user=user, token=token), status.HTTP_201_CREATED)


@app.post("/auth/login", tags=["Auth"])
async def login(payload: LoginRequest):
    """Log in and receive a token."""
    user = await require(user_manager).authenticate(payload.email, payload.password)
    token = create_access_token(user.id, user.role.value)
    return respond("Login successful", TokenData(user=user, token=token))


@app.get("/auth/user/bookmarks", tags=["Bookmarks"])
async def get_bookmarks(user_id: str = Depends(get_current_user_id)):
    """Get the caller's bookmarked books."""
    user = await require(bookmark_manager).get_bookmarks(user_id)
    return respond("User bookmarks retrieved", user)


@app.post("/auth/user/bookmarks/get", tags=["Bookmarks"])
async def get_bookmarks_post(user_id: str = Depends(get_current_user_id)):
    """Get the caller's bookmarked books."""
    user = await require(bookmark_manager).get_bookmarks(user_id)
    return respond("User bookmarks retrieved", user)


async def _toggle(user_id: str, payload: BookmarkRequest) -> JSONResponse:
    result = await require(bookmark_manager).toggle_bookmark(user_id, payload.book_id)
    if result.action == ToggleAction.ADDED:
        message = "Book added to bookmarks"
    else:
        message = "Book removed from bookmarks"
    return respond(message, result)


@app.post("/auth/user/bookmarks", tags=["Bookmarks"])
async def toggle_bookmark(payload: BookmarkRequest, user_id: str = Depends(get_current_user_id)):
    """Add the book to the caller's bookmarks, or remove it if already there."""
    return await _toggle(user_id, payload)


@app.post("/auth/user/bookmarks/add", tags=["Bookmarks"])
async def toggle_bookmark_json(payload: BookmarkRequest, user_id: str = Depends(get_current_user_id)):
    """Add or remove a bookmark using a JSON body."""
    return await _toggle(user_id, payload)


# Books endpoints
@app.post("/books", tags=["Books"], status_code=status.HTTP_201_CREATED)
async def create_book(
    title: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    isbn: Optional[str] = Form(None),
    genre: Optional[str] = Form(None),
    read_status: Optional[bool] = Form(None),
    user_rating: Optional[int] = Form(None),
    notes: Optional[str] = Form(None),
    coverImageUrl: Optional[str] = Form(None),
    isBestSeller: Optional[bool] = Form(None),
    isFeatured: Optional[bool] = Form(None),
    file: Optional[UploadFile] = File(None),
):
    """
    Add a book with its file.

    - **file**: book file (PDF, EPUB, MOBI, AZW, TXT, RTF, DOC, DOCX), required
    """
    lifecycle = require(lifecycle_manager)
    book_in = parse_book_create(form_fields(
        title=title, author=author, isbn=isbn, genre=genre, read_status=read_status,
        user_rating=user_rating, notes=notes, coverImageUrl=coverImageUrl,
        isBestSeller=isBestSeller, isFeatured=isFeatured,
    ))
    if file is None:
        raise ValidationError("Book file is required")

    data = await read_book_file(file)
    file_url = await require(file_storage).upload(data, file.content_type, file.filename)

    try:
        book = await lifecycle.create(book_in, file_url)
    except CatalogError:
        await discard_file(file_url)
        raise

    return respond("Book added successfully", book, status.HTTP_201_CREATED)


@app.get("/books", tags=["Books"])
async def list_books(
    search: Optional[str] = None,
    author: Optional[str] = None,
    read: Optional[bool] = None,
    min_rating: Optional[int] = Query(None, alias="minRating"),
):
    """
    Get all books.

    - **search**: full-text search over title, author and notes
    - **author**: author substring, case-insensitive
    - **read**: read status
    - **minRating**: minimum user rating (1-5)
    """
    try:
        filters = BookListFilters(search=search, author=author, read=read, min_rating=min_rating)
    except PydanticValidationError as e:
        raise ValidationError("Invalid filter", detail=str(e)) from e

    books = await require(query_engine).list_books(filters)
    return respond("Books retrieved successfully", books)


@app.get("/books/search-books", tags=["Books"])
async def search_books(query: Optional[str] = None, searchBy: str = "all"):
    """
    Search books by title or author.

    - **query**: substring to search for
    - **searchBy**: title, author or all
    """
    try:
        scope = SearchScope(searchBy)
    except ValueError:
        scope = SearchScope.ALL

    books = await require(query_engine).search_books(query or "", scope)
    return respond("Search completed successfully", books)


@app.get("/books/filter-books", tags=["Books"])
async def filter_books(
    author: Optional[str] = None,
    read: Optional[bool] = None,
    sortBy: Optional[str] = None,
    order: str = "asc",
):
    """
    Filter books by author and read status.

    - **sortBy**: title, author or createdAt
    - **order**: asc or desc
    """
    params = BookFilterParams(
        author=author,
        read=read,
        sort_by=sortBy,
        order=SortOrder.DESC if order.lower() == "desc" else SortOrder.ASC,
    )
    books = await require(query_engine).filter_books(params)
    return respond("Books filtered successfully", books)


@app.get("/books/special", tags=["Books"])
async def special_books():
    """New arrivals, best sellers and featured books."""
    sets = await require(query_engine).special_sets()
    return respond("Special books retrieved successfully", sets)


@app.get("/books/genre/{genre}", tags=["Books"])
async def books_by_genre(genre: str):
    """Books of one genre."""
    books = await require(query_engine).books_by_genre(genre)
    return respond("Books retrieved successfully", books)


@app.get("/books/{book_id}", tags=["Books"])
async def get_book(book_id: str):
    """Get a book by id."""
    book = await require(lifecycle_manager).get(book_id)
    return respond("Book found successfully", book)


@app.patch("/books/{book_id}", tags=["Books"])
async def update_book(
    book_id: str,
    title: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    isbn: Optional[str] = Form(None),
    genre: Optional[str] = Form(None),
    read_status: Optional[bool] = Form(None),
    user_rating: Optional[int] = Form(None),
    notes: Optional[str] = Form(None),
    coverImageUrl: Optional[str] = Form(None),
    isBestSeller: Optional[bool] = Form(None),
    isFeatured: Optional[bool] = Form(None),
    file: Optional[UploadFile] = File(None),
):
    """Update a book. A new file replaces the stored one."""
    lifecycle = require(lifecycle_manager)
    changes = parse_book_update(form_fields(
        title=title, author=author, isbn=isbn, genre=genre, read_status=read_status,
        user_rating=user_rating, notes=notes, coverImageUrl=coverImageUrl,
        isBestSeller=isBestSeller, isFeatured=isFeatured,
    ))

    new_file_url = None
    if file is not None:
        data = await read_book_file(file)
        new_file_url = await require(file_storage).upload(data, file.content_type, file.filename)

    try:
        book = await lifecycle.update(book_id, changes, new_file_url)
    except CatalogError:
        if new_file_url:
            await discard_file(new_file_url)
        raise

    return respond("Book updated successfully", book)


@app.delete("/books/{book_id}", tags=["Books"])
async def delete_book(book_id: str):
    """Delete a book and its file."""
    await require(lifecycle_manager).delete(book_id)
    return respond("Book deleted successfully")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=True,
        log_level="info"
    )
