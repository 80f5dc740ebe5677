import logging
import logging.config

LOGGER_NAME = "poll_dispatcher"

# Logging configuration dict shared by uvicorn and the application logger
log_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "[%(asctime)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S"
        },
        "access": {
            "format": "[%(asctime)s] %(client_addr)s - \"%(request_line)s\" %(status_code)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
            "()": "uvicorn.logging.AccessFormatter"
        }
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr"
        },
        "access": {
            "formatter": "access",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr"
        }
    },
    "loggers": {
        LOGGER_NAME: {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False
        },
        "uvicorn": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False
        },
        "uvicorn.error": {
            "level": "INFO"
        },
        "uvicorn.access": {
            "handlers": ["access"],
            "level": "INFO",
            "propagate": False
        }
    }
}


class Output:
    def __init__(self, logger_name=LOGGER_NAME):
        self.logger = logging.getLogger(logger_name)

    def configure(self, debug: bool = False):
        """Apply log_config and optionally switch the application logger to DEBUG"""
        # uvicorn re-applies log_config on startup, so the level lives there too
        log_config["loggers"][LOGGER_NAME]["level"] = "DEBUG" if debug else "INFO"
        logging.config.dictConfig(log_config)
        self.set_level(logging.DEBUG if debug else logging.INFO)

    def set_level(self, level):
        self.logger.setLevel(level)

    def debug(self, message):
        """Log debug level message"""
        self.logger.debug(message)

    def info(self, message):
        """Log info level message"""
        self.logger.info(message)

    def warning(self, message):
        """Log warning level message"""
        self.logger.warning(message)

    def error(self, message, exc_info=False):
        """Log error level message"""
        self.logger.error(message, exc_info=exc_info)

    def critical(self, message):
        """Log critical level message"""
        self.logger.critical(message)


# Standard output for application logging
output = Output()
