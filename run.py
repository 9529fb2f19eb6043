"""Run the SilverQuill journal API with uvicorn."""

import uvicorn

from silverquill.application.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "silverquill.application.api:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
