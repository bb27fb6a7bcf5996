from __future__ import annotations

import re
from urllib.parse import urlparse

import httpx

_VERSION_PATH_RE = re.compile(r"/(?:api/)?v\d+(?:\.\d+)?(?:beta)?(?:/|$)", re.IGNORECASE)

OPENAI_CHAT_PATH = "/chat/completions"
OPENAI_RESPONSES_PATH = "/responses"


def _has_versioned_path(base_url: str) -> bool:
    try:
        path = urlparse(base_url).path or ""
    except ValueError:
        return False
    if not path:
        return False
    return bool(_VERSION_PATH_RE.search(path.rstrip("/")))


def is_complete_endpoint(endpoint: str, expected_path: str) -> bool:
    """
    判断 endpoint 是否已经是完整请求地址，避免重复拼接路径：
    已以目标路径结尾，或包含 /v1/、/deployments/（Azure），或带查询参数
    """
    if not endpoint:
        return False
    return (
        endpoint.rstrip("/").endswith(expected_path)
        or "/v1/" in endpoint
        or "/deployments/" in endpoint
        or "?" in endpoint
    )


def ensure_path(endpoint: str, expected_path: str) -> str:
    if not endpoint:
        return expected_path
    if is_complete_endpoint(endpoint, expected_path):
        return endpoint
    return f"{endpoint.rstrip('/')}{expected_path}"


def derive_openai_base_url(endpoint: str | None, default_endpoint: str) -> str:
    """
    从配置的 endpoint 推导 OpenAI 兼容网关的 base URL

    - 去掉查询参数
    - 去掉 /chat/completions、/responses 及其后的具体路径
    - 含 /v1 时保留到 /v1 为止
    - 不含版本路径时补 /v1（openai 协议网关的约定）
    """
    raw = endpoint or default_endpoint
    base = raw.split("?", 1)[0]

    for suffix in (OPENAI_CHAT_PATH, OPENAI_RESPONSES_PATH):
        index = base.find(suffix)
        if index != -1:
            base = base[:index]
            break

    v1_index = base.find("/v1")
    if v1_index != -1:
        return base[: v1_index + len("/v1")]

    base = base.rstrip("/")
    if not _has_versioned_path(base):
        base = f"{base}/v1"
    return base


def is_responses_endpoint(endpoint: str | None) -> bool:
    if not endpoint:
        return False
    path = endpoint.split("?", 1)[0].rstrip("/")
    return path.endswith(OPENAI_RESPONSES_PATH)


def build_openai_url(endpoint: str | None, default_endpoint: str) -> str:
    """Chat Completions / Responses 两种路径的最终请求地址"""
    expected = OPENAI_RESPONSES_PATH if is_responses_endpoint(endpoint) else OPENAI_CHAT_PATH
    raw = endpoint or default_endpoint
    if raw.split("?", 1)[0].rstrip("/").endswith(expected) or "/deployments/" in raw:
        return raw
    return f"{derive_openai_base_url(endpoint, default_endpoint)}{expected}"


def build_gemini_stream_url(endpoint: str | None, default_endpoint: str, model: str) -> str:
    """
    :generateContent 改写为 :streamGenerateContent；只有 base 时补全模型路径

    已配置的查询参数（如网关要求的 alt=sse、api-version）原样保留
    """
    raw, sep, query = (endpoint or default_endpoint).partition("?")
    if raw.endswith(":streamGenerateContent"):
        path = raw
    elif raw.endswith(":generateContent"):
        path = raw[: -len(":generateContent")] + ":streamGenerateContent"
    else:
        path = f"{raw.rstrip('/')}/models/{model}:streamGenerateContent"
    return f"{path}{sep}{query}"


def append_query(url: str, params: dict[str, str]) -> str:
    """在保留已有查询参数的前提下追加参数"""
    return str(httpx.URL(url).copy_merge_params(params))


def origin_of(url: str) -> str | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"
