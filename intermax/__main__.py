"""Run the Intermax server: python3 -m intermax"""

import uvicorn

from intermax.config import settings


def main() -> None:
    uvicorn.run("intermax.api.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
