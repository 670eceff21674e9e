import uvicorn

from ca_assistant.core.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "ca_assistant.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
