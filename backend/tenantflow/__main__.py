import uvicorn

from tenantflow.core.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "tenantflow.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=not settings.is_production,
    )


if __name__ == "__main__":
    main()
