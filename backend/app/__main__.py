"""Run the API with uvicorn: ``python -m app``."""
import uvicorn

from app.config import settings


def main():
    uvicorn.run("app.main:app", host="127.0.0.1", port=settings.API_PORT)


if __name__ == "__main__":
    main()
