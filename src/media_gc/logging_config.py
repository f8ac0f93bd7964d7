import sys
from pathlib import Path
from loguru import logger


def configure_logging() -> None:
    from media_gc.config.settings import get_settings

    settings = get_settings()
    log_level = settings.log_level.upper()

    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> | {extra}",
        level=log_level,
        colorize=not settings.log_serialize,
        serialize=settings.log_serialize,
    )

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # JSON lines on disk so cleanup runs can be audited per asset id
    logger.add(
        log_dir / "media_gc.log",
        level=log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        serialize=True,
    )


__all__ = ["logger", "configure_logging"]
