from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
from app.core.auth import decode_token_subject
from app.core.responses import error_response
import os

# Shared counters need Redis in production; a single process can count in memory
RATE_LIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
RETRY_AFTER_SECONDS = int(os.getenv("RATE_LIMIT_RETRY_AFTER", "60"))


# Custom key function for rate limiting
def get_rate_limit_key(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        user_id = decode_token_subject(auth_header.split("Bearer ", 1)[1])
        if user_id:
            return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_rate_limit_key,
    storage_uri=RATE_LIMIT_STORAGE_URI,
    default_limits=["100/hour"],
    enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
)


async def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={
            **error_response(
                "Too many requests. Please try again later.",
                429,
                {"retry_after": RETRY_AFTER_SECONDS, "limit": str(exc.detail)},
            ),
            "status_code": 429,
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
