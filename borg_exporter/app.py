import argparse
import logging
import os
import sys

from flask import Flask, current_app, jsonify
from prometheus_client import CONTENT_TYPE_LATEST

from borg_exporter.config import ExporterConfig, load_config
from borg_exporter.errors import ConfigError, ExporterError
from borg_exporter.prometheus_exporter import scrape_all

logger = logging.getLogger(__name__)

CONFIG_KEY = "BORG_EXPORTER"
RETRY_KEY = "BORG_EXPORTER_RETRY"


# -----------------------------
# Application
# -----------------------------
def create_app(config: ExporterConfig, policy=None) -> Flask:
    app = Flask(__name__)
    app.config[CONFIG_KEY] = config
    app.config[RETRY_KEY] = policy or config.retry_policy()
    app.add_url_rule("/metrics", view_func=api_metrics, methods=["GET"])
    return app


# -----------------------------
# Metrics
# -----------------------------
def api_metrics():
    config = current_app.config[CONFIG_KEY]
    policy = current_app.config[RETRY_KEY]
    logger.info("Received an incoming connection to `/metrics`")

    try:
        output = scrape_all(config.repositories, policy=policy, command=config.borg_command)
    except ExporterError:
        logger.exception("An error occurred while scraping borg repositories")
        return jsonify({"error": "scrape failed"}), 500

    logger.debug("Successfully generated prometheus output:\n%s", output)
    return output, 200, {"Content-Type": CONTENT_TYPE_LATEST}


# -----------------------------
# Run Application
# -----------------------------
def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="borg-prometheus-exporter",
        description="Serve BorgBackup repository statistics to Prometheus.",
    )
    parser.add_argument("config_file", help="The configuration file, in YAML")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config_file)
    except ConfigError:
        logger.exception("An error occurred while opening config file")
        return 1

    logger.info("Started listening on %s:%d", config.listen_address, config.port)
    create_app(config).run(host=config.listen_address, port=config.port, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
