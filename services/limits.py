"""
Single source of truth for every rate-limit policy.

Each policy is a fixed window: at most ``max_requests`` per ``window_minutes``
per caller. The caller identity (normalized email, client IP or subject id)
is supplied at the call site.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    max_requests: int
    window_minutes: int
    message: str = "Too many requests"

    def key(self, caller: str) -> str:
        return f"{self.name}:{caller}"


class Limits:
    # OTP endpoints (keyed by normalized identifier)
    OTP_ISSUE = RateLimitPolicy("otp", 5, 15, "Too many requests")
    OTP_VERIFY = RateLimitPolicy("verify", 10, 15, "Too many verification attempts")
    OTP_RESEND = RateLimitPolicy("resend", 3, 15, "Too many resend requests")

    # Signup completion (keyed by normalized identifier)
    SIGNUP = RateLimitPolicy("signup", 5, 15, "Too many signup attempts")

    # Token endpoints (keyed by client IP)
    TOKEN_REFRESH = RateLimitPolicy(
        "refresh", 20, 15, "Too many token refresh attempts"
    )
    LOGOUT = RateLimitPolicy("logout", 60, 60, "Too many logout requests")

    # Verification endpoints (keyed by subject id)
    AGE_VERIFY = RateLimitPolicy("age_verify", 10, 15, "Too many verification attempts")
