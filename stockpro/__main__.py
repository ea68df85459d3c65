import logging

from stockpro import create_app


logger = logging.getLogger("stockpro")


def main() -> None:
    app = create_app()
    if app.config.get("SERVERLESS"):
        # The platform imports create_app() itself and never binds a port.
        logger.info("serverless_mode_no_listen", extra={"env": app.config.get("ENV_NAME")})
        return
    host = app.config.get("HOST", "0.0.0.0")
    port = int(app.config.get("PORT", 3000))
    logger.info("server_listening", extra={"host": host, "port": port, "db_path": app.config.get("DB_PATH")})
    app.run(host=host, port=port)


if __name__ == "__main__":
    main()
