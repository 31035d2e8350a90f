import os

import uvicorn

from linkmonitor.main import app


def main() -> None:
    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "3000")))


if __name__ == "__main__":
    main()
