import uvicorn

from roomrelay.config import RelaySettings


def main():
    settings = RelaySettings.from_env()
    ## uvicorn installs the SIGINT/SIGTERM handlers and exits non-zero if it cannot bind
    uvicorn.run(
        "roomrelay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        ws_max_size=settings.max_frame_bytes + 1,
        timeout_graceful_shutdown=settings.shutdown_drain_sec,
        ssl_certfile=settings.ssl_certfile,
        ssl_keyfile=settings.ssl_keyfile,
    )


if __name__ == "__main__":
    main()
