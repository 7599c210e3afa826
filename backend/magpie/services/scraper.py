"""
网页抓取

提供带安全防护的网页抓取能力：
- SSRF 防护（禁止访问内网地址，重定向目标同样检查）
- 协议限制（只允许 http/https）
- 超时、响应大小、重定向次数限制
- 标题、描述、站点名称、语言和正文提取
"""

import re
import socket
import ipaddress
from urllib.parse import urlparse
from typing import Optional
import logging

import httpx
from bs4 import BeautifulSoup

from ..config import settings
from .base import ContentScraper, ScrapedContent, ScrapeError

logger = logging.getLogger(__name__)


# ==================== 安全配置 ====================

# 禁止访问的内网 IP 段
BLOCKED_IP_RANGES = [
    ipaddress.ip_network("127.0.0.0/8"),      # localhost
    ipaddress.ip_network("10.0.0.0/8"),       # 私有网络
    ipaddress.ip_network("172.16.0.0/12"),    # 私有网络
    ipaddress.ip_network("192.168.0.0/16"),   # 私有网络
    ipaddress.ip_network("169.254.0.0/16"),   # 链路本地
    ipaddress.ip_network("100.64.0.0/10"),    # 运营商 NAT
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),          # IPv6 localhost
    ipaddress.ip_network("fc00::/7"),         # IPv6 私有
    ipaddress.ip_network("fe80::/10"),        # IPv6 链路本地
]

# 禁止访问的主机名
BLOCKED_HOSTNAMES = [
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "::1",
    "metadata.google.internal",  # GCP 元数据服务
    "169.254.169.254",           # AWS/云厂商元数据服务
]

# 允许的协议
ALLOWED_SCHEMES = ["http", "https"]

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; MagpieBot/1.0; +https://github.com/magpie)"

VIDEO_HOSTS = ("youtube.com", "youtu.be", "vimeo.com", "bilibili.com")
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")

# 中文按字计数，其他按词计数
_CJK_RE = re.compile(r"[一-鿿]")
_WORD_RE = re.compile(r"[A-Za-z0-9_]+")


class SSRFError(ScrapeError):
    """SSRF 安全错误"""
    pass


def is_ip_blocked(ip: str) -> bool:
    """检查 IP 是否在禁止列表中"""
    try:
        ip_obj = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(ip_obj in blocked_range for blocked_range in BLOCKED_IP_RANGES)


def validate_url(url: str, resolve: bool = True) -> str:
    """
    验证 URL 安全性

    Args:
        url: 要验证的 URL
        resolve: 是否做 DNS 解析检查

    Returns:
        原 URL

    Raises:
        SSRFError: 如果 URL 不安全
    """
    if not url:
        raise SSRFError("URL 不能为空")

    parsed = urlparse(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise SSRFError(f"不允许的协议: {parsed.scheme}，仅支持 http/https")

    hostname = parsed.hostname
    if not hostname:
        raise SSRFError("URL 缺少主机名")

    if hostname.lower() in BLOCKED_HOSTNAMES:
        raise SSRFError(f"禁止访问的主机: {hostname}")

    if is_ip_blocked(hostname):
        raise SSRFError(f"禁止访问内网地址: {hostname}")

    if resolve:
        try:
            resolved_ips = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except socket.gaierror:
            raise SSRFError(f"无法解析域名: {hostname}")
        for family, type_, proto, canonname, sockaddr in resolved_ips:
            ip = sockaddr[0]
            if is_ip_blocked(ip):
                raise SSRFError(f"域名 {hostname} 解析到禁止的内网地址: {ip}")

    return url


def extract_domain(url: str) -> str:
    """URL 的主机名（去掉 www.）"""
    hostname = (urlparse(url).hostname or "").lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def detect_content_type(url: str) -> str:
    """根据 URL 判断内容类型"""
    url_lower = url.lower()
    if any(host in url_lower for host in VIDEO_HOSTS):
        return "video"
    path = urlparse(url_lower).path
    if path.endswith(".pdf"):
        return "pdf"
    if path.endswith(IMAGE_EXTENSIONS):
        return "image"
    return "article"


def count_words(text: str) -> int:
    """中文按字、其他语言按词计数"""
    if not text:
        return 0
    return len(_CJK_RE.findall(text)) + len(_WORD_RE.findall(text))


def _meta(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip()
    return ""


def parse_html(url: str, html: str, max_content_length: int = 10000) -> ScrapedContent:
    """从 HTML 中提取页面信息"""
    soup = BeautifulSoup(html or "", "html.parser")

    title = _meta(soup, property="og:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip()

    description = _meta(soup, name="description") or _meta(soup, property="og:description")
    site_name = _meta(soup, property="og:site_name") or None

    language = None
    if soup.html and soup.html.get("lang"):
        language = soup.html["lang"].split("-")[0].lower()

    for tag in soup(["script", "style", "noscript", "iframe", "svg", "nav", "footer", "header"]):
        tag.decompose()
    body = soup.find("article") or soup.find("main") or soup.body or soup
    content = re.sub(r"\s+", " ", body.get_text(" ")).strip()
    if len(content) > max_content_length:
        content = content[:max_content_length]

    return ScrapedContent(
        url=url,
        title=title,
        description=description,
        content=content,
        content_type=detect_content_type(url),
        site_name=site_name,
        language=language,
        word_count=count_words(content),
    )


# ==================== 抓取器 ====================

class WebScraper(ContentScraper):
    """基于 httpx 的网页抓取器"""

    def __init__(
        self,
        timeout: float = settings.SCRAPE_TIMEOUT,
        max_redirects: int = settings.SCRAPE_MAX_REDIRECTS,
        max_size: int = settings.SCRAPE_MAX_RESPONSE_SIZE,
        max_content_length: int = 10000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.max_size = max_size
        self.max_content_length = max_content_length
        self._transport = transport

    async def _check_redirect(self, request: httpx.Request):
        validate_url(str(request.url), resolve=self._transport is None)

    async def scrape(self, url: str) -> ScrapedContent:
        validate_url(url, resolve=self._transport is None)

        headers = {
            "User-Agent": DEFAULT_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                max_redirects=self.max_redirects,
                transport=self._transport,
                event_hooks={"request": [self._check_redirect]},
            ) as client:
                async with client.stream("GET", url, headers=headers) as response:
                    if response.status_code >= 400:
                        raise ScrapeError(f"HTTP {response.status_code}")

                    content_length = response.headers.get("content-length")
                    if content_length and content_length.isdigit() and int(content_length) > self.max_size:
                        raise ScrapeError(f"响应大小超限: {content_length} > {self.max_size}")

                    chunks = []
                    received = 0
                    async for chunk in response.aiter_bytes():
                        received += len(chunk)
                        if received > self.max_size:
                            raise ScrapeError(f"响应大小超限: > {self.max_size}")
                        chunks.append(chunk)
                    encoding = response.encoding or "utf-8"
        except httpx.TimeoutException:
            raise ScrapeError(f"抓取超时 ({self.timeout}s)")
        except httpx.HTTPError as e:
            raise ScrapeError(f"抓取失败: {e}")

        html = b"".join(chunks).decode(encoding, errors="replace")
        result = parse_html(url, html, self.max_content_length)
        logger.info(f"🌐 抓取完成: {url} ({result.content_type}, {result.word_count} 字)")
        return result
