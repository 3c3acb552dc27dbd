from core_utils.uvicorn_entry import run


def main() -> None:
    run("gateway.app:app", access_log=False)


if __name__ == "__main__":
    main()
