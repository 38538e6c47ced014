import uvicorn

from authcore.main.config import config

if __name__ == "__main__":
    uvicorn.run(
        "authcore.main.web:app",
        host="0.0.0.0",
        port=8000,
        reload=config.app.DEBUG,
        log_level=config.app.LOG_LEVEL.lower(),
    )
