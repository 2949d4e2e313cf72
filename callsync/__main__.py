import uvicorn

from .settings import settings

if __name__ == "__main__":
    uvicorn.run("callsync.main:app", host=settings.host, port=settings.port)
