# dependencies.py
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session
import logging

from .config import settings
from .database import get_session
from .security import decode_jwt_token
from .media_utils import read_dimensions
from .application.services.audit_service import StorageAuditService
from .application.services.auth_service import AuthService
from .application.services.category_service import CategoryTracker
from .application.services.image_service import ImageService
from .application.services.quota_service import QuotaAccountant
from .application.services.upload_service import UploadPipeline, UploadPolicy
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.storage.local_storage import LocalBlobStore
from .infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from .infrastructure.persistence.sqlalchemy.repositories.category_repository_sql import SqlCategoryRepository
from .infrastructure.persistence.sqlalchemy.repositories.image_repository_sql import SqlImageRepository

logger = logging.getLogger(__name__)

oauth2_scheme = HTTPBearer(auto_error=False)


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore()


def get_audit_logger() -> StdAuditLogger:
    return StdAuditLogger()


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> str:
    token = None
    if credentials and credentials.credentials:
        token = credentials.credentials
    else:
        # Fallback to cookie
        token = request.cookies.get("access_token")
    payload = decode_jwt_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user ID")
    user = SqlUserRepository(session).get_by_id(user_id)
    if not user or not user.is_active:
        logger.warning(f"Token for unknown or inactive user {user_id}")
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user_id


def get_quota_accountant(
    session: Session = Depends(get_session),
    audit: StdAuditLogger = Depends(get_audit_logger),
) -> QuotaAccountant:
    return QuotaAccountant(user_repo=SqlUserRepository(session), audit=audit)


def get_category_tracker(
    session: Session = Depends(get_session),
    audit: StdAuditLogger = Depends(get_audit_logger),
) -> CategoryTracker:
    return CategoryTracker(repo=SqlCategoryRepository(session), audit=audit)


def get_upload_pipeline(
    session: Session = Depends(get_session),
    blob_store: LocalBlobStore = Depends(get_blob_store),
    categories: CategoryTracker = Depends(get_category_tracker),
    quota: QuotaAccountant = Depends(get_quota_accountant),
    audit: StdAuditLogger = Depends(get_audit_logger),
) -> UploadPipeline:
    return UploadPipeline(
        blob_store=blob_store,
        image_repo=SqlImageRepository(session),
        categories=categories,
        quota=quota,
        policy=UploadPolicy.from_settings(settings),
        audit=audit,
        dimension_reader=read_dimensions,
    )


def get_image_service(
    session: Session = Depends(get_session),
    blob_store: LocalBlobStore = Depends(get_blob_store),
    categories: CategoryTracker = Depends(get_category_tracker),
    quota: QuotaAccountant = Depends(get_quota_accountant),
    audit: StdAuditLogger = Depends(get_audit_logger),
) -> ImageService:
    return ImageService(
        image_repo=SqlImageRepository(session),
        blob_store=blob_store,
        categories=categories,
        quota=quota,
        audit=audit,
        max_page_size=settings.MAX_PAGE_SIZE,
    )


def get_auth_service(session: Session = Depends(get_session)) -> AuthService:
    return AuthService(user_repo=SqlUserRepository(session), default_max_storage=settings.DEFAULT_MAX_STORAGE)


def build_audit_service(session: Session) -> StorageAuditService:
    return StorageAuditService(
        blob_store=get_blob_store(),
        image_repo=SqlImageRepository(session),
        user_repo=SqlUserRepository(session),
        category_repo=SqlCategoryRepository(session),
        audit=get_audit_logger(),
    )
