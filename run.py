from reviewbot.config import SettingsError, poll_interval_from, read_environ, wait_for_settings
from reviewbot.logger import get_logger

logger = get_logger()


def main() -> None:
    try:
        interval = poll_interval_from(read_environ())
        settings = wait_for_settings(interval=interval)
    except SettingsError as exc:
        logger.error(f"Cannot start: {exc}")
        raise SystemExit(1) from exc

    logger.info(
        "Starting Lint Review Bot for {repository} on {host}:{port}",
        repository=settings.repository_full_name,
        host=settings.host,
        port=settings.port,
    )

    import uvicorn

    from reviewbot.main import create_app

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        workers=1,
        log_level="info",
    )


if __name__ == "__main__":
    main()
