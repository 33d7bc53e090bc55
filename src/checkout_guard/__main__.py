import uvicorn

from checkout_guard.settings import get_config


def main() -> None:
    config = get_config()
    uvicorn.run(
        "checkout_guard.application:get_production_app",
        factory=True,
        host=config.api.host,
        port=config.api.port,
    )


if __name__ == "__main__":
    main()
