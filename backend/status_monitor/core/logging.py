"""
日志配置（Loguru）

- 控制台 + 可选文件输出，标准库 logging 统一转发到 Loguru
- 上游错误响应可能回显请求里的密钥，所有日志在输出前统一脱敏
"""
import logging
import re
import sys

from loguru import logger

from status_monitor.core.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# OpenAI / Anthropic 风格的 sk- 前缀密钥，以及 Gemini 的 AIza 前缀密钥与 URL 中的 key= 参数
SECRET_PATTERNS = (
    re.compile(r"\b(?:sk|rk)-[A-Za-z0-9_-]{10,}"),
    re.compile(r"\bAIza[0-9A-Za-z_-]{20,}"),
    re.compile(r"(?<=[?&]key=)[^&\s\"']+"),
)

# 探测频繁时每个请求一行 INFO 会刷屏
_NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


def mask_key(key: str | None) -> str:
    """日志中展示密钥时只保留首尾少量字符"""
    if not key:
        return ""
    if len(key) <= 4:
        return "****"
    return f"{key[:4]}****{key[-2:]}"


def redact_secrets(text: str) -> str:
    for pattern in SECRET_PATTERNS:
        text = pattern.sub(lambda match: mask_key(match.group(0)), text)
    return text


def _redact_record(record) -> None:
    record["message"] = redact_secrets(record["message"])


class InterceptHandler(logging.Handler):
    """
    拦截标准库 logging 消息并转发到 Loguru
    """
    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # 跳过 logging 模块自身的栈帧，保证 Loguru 记录的是真实调用位置
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging():
    """
    配置 Loguru 日志
    """
    logger.remove()
    logger.configure(patcher=_redact_record)

    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format=CONSOLE_FORMAT,
        serialize=settings.LOG_JSON_FORMAT,
        enqueue=settings.LOG_ASYNC,
        backtrace=True,
        diagnose=False,  # 异常栈中不打印局部变量（含 API Key）
    )

    if settings.LOG_FILE_PATH:
        logger.add(
            settings.LOG_FILE_PATH,
            rotation=settings.LOG_ROTATION,
            retention=settings.LOG_RETENTION,
            level=settings.LOG_LEVEL,
            format=FILE_FORMAT,
            encoding="utf-8",
            enqueue=settings.LOG_ASYNC,
            compression="zip",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
