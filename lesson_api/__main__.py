"""Run the API with uvicorn: `python -m lesson_api`."""

from __future__ import annotations

import uvicorn

from . import config
from .main import configure_logging


def main() -> None:
    configure_logging()
    uvicorn.run("lesson_api.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
