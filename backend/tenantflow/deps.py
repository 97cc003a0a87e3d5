from collections.abc import Iterator

from fastapi import Request
from sqlalchemy.orm import Session

from tenantflow.core.settings import Settings


# FastAPI dependency: one session per request, taken from the app's Database handle
def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
