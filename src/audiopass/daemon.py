"""Daemon entry point: serve the processing API with uvicorn."""

import sys

import uvicorn

from audiopass.api.app import create_app
from audiopass.api.routes import tool_available
from audiopass.config import Config
from audiopass.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


class DaemonOrchestrator:
    """Owns the uvicorn server for one daemon run."""

    def __init__(self, config: Config):
        """Initialize daemon orchestrator.

        Args:
            config: Application configuration
        """
        self.config = config
        self.app = create_app(config)
        self.server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=config.api.host,
                port=config.api.port,
                log_level=config.logging.level,
                access_log=False,  # RequestLoggingMiddleware logs /process
            )
        )

    def check_tools(self) -> bool:
        """Warn about missing ffmpeg/ffprobe before accepting requests."""
        commit = self.config.commit
        ok = True
        for name, executable in (("ffmpeg", commit.ffmpeg_path), ("ffprobe", commit.ffprobe_path)):
            if not tool_available(executable):
                logger.warning("External tool unavailable", tool=name, executable=executable)
                ok = False
        return ok

    def run(self) -> None:
        """Run the server until it is told to stop.

        uvicorn installs its own SIGINT/SIGTERM handlers and drains
        in-flight requests before returning.
        """
        self.check_tools()
        logger.info(
            "Starting daemon",
            host=self.config.api.host,
            port=self.config.api.port,
            dry_run=self.config.execution.dry_run,
        )

        try:
            self.server.run()
        except Exception as e:
            logger.exception("Daemon error", error=str(e))
            sys.exit(1)
        finally:
            logger.info("Daemon stopped")


def start_daemon(config: Config):
    """Start the daemon.

    Args:
        config: Application configuration
    """
    setup_logging(config.logging)
    DaemonOrchestrator(config).run()
