"""
Biometric endpoint hardening.

BiometricSecurityMiddleware wraps every request under the biometric prefix:
HTTPS enforcement in production, device fingerprinting, suspicious client
logging, failure-based rate limiting with progressive slow-down, security and
no-cache response headers, and an audit line per request.

The request body validators at the bottom run inside the route handlers.
"""

import asyncio
import hashlib
import logging
import re
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from ..auth.errors import AuthError
from ...config.provider import SecurityConfig

logger = logging.getLogger(__name__)

BIOMETRIC_PREFIX = "/api/auth/biometric/"

SUSPICIOUS_USER_AGENTS = [
    re.compile(r"bot|crawler|spider|scraper", re.IGNORECASE),
    re.compile(r"curl|wget|python|postman", re.IGNORECASE),
    re.compile(r"automated|headless", re.IGNORECASE),
]

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

MAX_CREDENTIAL_ID_LENGTH = 1024

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": "default-src 'self'; img-src * data: blob:; connect-src *",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def client_ip(request: Request, trust_proxy: bool = False) -> str:
    """Peer address, or the first X-Forwarded-For hop when behind a trusted proxy."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def device_fingerprint(request: Request, ip: str) -> str:
    """sha256 over user agent, accept-language, accept-encoding and client IP."""
    parts = [
        request.headers.get("user-agent", ""),
        request.headers.get("accept-language", ""),
        request.headers.get("accept-encoding", ""),
        ip,
    ]
    return hashlib.sha256(":".join(parts).encode()).hexdigest()


def is_suspicious_user_agent(user_agent: str) -> bool:
    return any(pattern.search(user_agent) for pattern in SUSPICIOUS_USER_AGENTS)


class BiometricSecurityMiddleware:
    """HTTP middleware guarding the biometric endpoints."""

    def __init__(self, config: SecurityConfig, path_prefix: str = BIOMETRIC_PREFIX):
        self.config = config
        self.path_prefix = path_prefix

    def applies_to(self, request: Request) -> bool:
        return request.url.path.startswith(self.path_prefix)

    def is_secure(self, request: Request) -> bool:
        proto = request.headers.get("x-forwarded-proto") or request.url.scheme
        return proto == "https"

    @staticmethod
    def _redis(request: Request):
        services = getattr(request.app.state, "services", None)
        return services.redis if services is not None else None

    @staticmethod
    def _rate_key(request: Request, ip: str) -> str:
        raw = f"{ip}:{request.headers.get('user-agent', '')}"
        return f"biometric:rate:{hashlib.sha256(raw.encode()).hexdigest()}"

    def slow_down_delay(self, failures: int) -> float:
        """Seconds to hold a request given the failures already recorded."""
        extra = failures - self.config.slow_down_after
        if extra <= 0:
            return 0.0
        delay_ms = min(extra * self.config.slow_down_delay_ms, self.config.slow_down_max_delay_ms)
        return delay_ms / 1000

    def format_error(self, status_code: int, message: str, **extra: Any) -> JSONResponse:
        content: Dict[str, Any] = {"success": False, "message": message}
        content.update(extra)
        response = JSONResponse(status_code=status_code, content=content)
        response.headers.update(SECURITY_HEADERS)
        return response

    async def __call__(self, request: Request, call_next):
        """Process the request through the biometric security stack."""
        if not self.applies_to(request):
            return await call_next(request)

        if self.config.is_production and self.config.require_https and not self.is_secure(request):
            return self.format_error(403, "Biometric authentication requires HTTPS connection")

        ip = client_ip(request, self.config.trust_proxy)
        fingerprint = device_fingerprint(request, ip)
        user_agent = request.headers.get("user-agent", "")
        request.state.device_fingerprint = fingerprint
        request.state.device_info = {"userAgent": user_agent, "ip": ip, "fingerprint": fingerprint}

        suspicious = is_suspicious_user_agent(user_agent)
        request.state.is_suspicious = suspicious
        if suspicious:
            logger.warning(
                f"Suspicious biometric request: ip={ip} ua={user_agent!r} "
                f"fingerprint={fingerprint[:16]} path={request.url.path}"
            )

        redis_client = self._redis(request)
        rate_key = self._rate_key(request, ip)
        failures = 0
        if redis_client is not None:
            failures = int(await redis_client.get(rate_key) or 0)
            if failures >= self.config.rate_limit_max:
                logger.warning(f"Biometric rate limit hit: ip={ip} path={request.url.path}")
                return self.format_error(
                    429,
                    "Too many biometric authentication attempts. Please try again later.",
                    retryAfter=self.config.rate_limit_window // 60,
                )
            delay = self.slow_down_delay(failures)
            if delay:
                await asyncio.sleep(delay)

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Biometric {request.method} {request.url.path} raised "
                f"ip={ip} fingerprint={fingerprint[:16]}"
            )
            await self._record_failure(request, redis_client, rate_key, 500, ip, fingerprint, suspicious)
            raise
        response.headers.update(SECURITY_HEADERS)

        log_line = (
            f"Biometric {request.method} {request.url.path} -> {response.status_code} "
            f"ip={ip} fingerprint={fingerprint[:16]}"
        )
        if response.status_code >= 400:
            logger.warning(log_line)
            await self._record_failure(
                request, redis_client, rate_key, response.status_code, ip, fingerprint, suspicious
            )
        else:
            logger.info(log_line)

        return response

    async def _record_failure(
        self,
        request: Request,
        redis_client,
        rate_key: str,
        status: int,
        ip: str,
        fingerprint: str,
        suspicious: bool,
    ) -> None:
        """Count a failed request against the rate limit and audit it."""
        if redis_client is None:
            return
        count = await redis_client.incr(rate_key)
        if count == 1:
            await redis_client.expire(rate_key, self.config.rate_limit_window)
        await request.app.state.services.audit.record(
            "biometric_request_failed",
            {
                "path": request.url.path,
                "status": status,
                "ip": ip,
                "fingerprint": fingerprint,
                "suspicious": suspicious,
            },
        )


def validate_challenge_id(challenge_id: Optional[str]) -> None:
    """Raises AuthError(400) if a provided challenge id is not a UUID."""
    if challenge_id and (not isinstance(challenge_id, str) or not UUID_PATTERN.match(challenge_id)):
        raise AuthError(400, "Invalid challenge ID format")


def validate_credential_structure(response: Optional[Dict[str, Any]], ceremony: str) -> None:
    """
    Shallow structure check of a WebAuthn response before it reaches the verifier.

    Args:
        response: registrationResponse or authenticationResponse body field
        ceremony: "registration" or "authentication"
    """
    if not response:
        return
    if not isinstance(response, dict) or not response.get("id") or not response.get("response"):
        raise AuthError(400, f"Invalid {ceremony} response structure")
    if len(str(response["id"])) > MAX_CREDENTIAL_ID_LENGTH:
        raise AuthError(400, "Credential ID too long")
