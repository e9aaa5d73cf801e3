import uvicorn

from tasktracker import config


def main() -> None:
    uvicorn.run("tasktracker.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
