"""
CAPTCHA data model.

Request, handle and result types exchanged with the remote solving
service, plus the per-type wiring (task type tag, solution field,
DOM response field).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any


class CaptchaType(Enum):
    """Supported CAPTCHA types."""
    RECAPTCHA_V2 = "recaptcha_v2"
    HCAPTCHA = "hcaptcha"
    CLOUDFLARE_TURNSTILE = "cloudflare-turnstile"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CaptchaProfile:
    """How one CAPTCHA type is solved and where its token goes."""
    task_type: str
    solution_field: str
    response_field: str


# Task type tags and solution fields follow the createTask/getTaskResult API
CAPTCHA_PROFILES: Dict[CaptchaType, CaptchaProfile] = {
    CaptchaType.RECAPTCHA_V2: CaptchaProfile(
        task_type="ReCaptchaV2TaskProxyLess",
        solution_field="gRecaptchaResponse",
        response_field="g-recaptcha-response",
    ),
    CaptchaType.HCAPTCHA: CaptchaProfile(
        task_type="HCaptchaTaskProxyLess",
        solution_field="gRecaptchaResponse",
        response_field="h-captcha-response",
    ),
    CaptchaType.CLOUDFLARE_TURNSTILE: CaptchaProfile(
        task_type="AntiTurnstileTaskProxyLess",
        solution_field="token",
        response_field="cf-turnstile-response",
    ),
}


class TaskStatus(Enum):
    """Remote task status. READY and FAILED are terminal."""
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.PENDING


@dataclass(frozen=True)
class TaskRequest:
    """One solve request, sent once per challenge encounter."""
    client_key: str
    task_type: str
    website_url: str
    website_key: str

    def to_payload(self) -> Dict[str, Any]:
        """Render the createTask JSON body."""
        return {
            "clientKey": self.client_key,
            "task": {
                "type": self.task_type,
                "websiteURL": self.website_url,
                "websiteKey": self.website_key,
            },
        }

    def __repr__(self) -> str:
        # Keep the client key out of logs and tracebacks
        return (
            f"TaskRequest(task_type={self.task_type!r}, "
            f"website_url={self.website_url!r}, website_key={self.website_key!r})"
        )


@dataclass(frozen=True)
class TaskHandle:
    """Opaque task id issued by the solving service."""
    task_id: str
    captcha_type: CaptchaType = CaptchaType.RECAPTCHA_V2

    def __str__(self) -> str:
        return self.task_id


@dataclass(frozen=True)
class TaskResult:
    """Outcome of one getTaskResult poll."""
    status: TaskStatus
    token: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def pending(cls) -> "TaskResult":
        return cls(status=TaskStatus.PENDING)

    @classmethod
    def ready(cls, token: str) -> "TaskResult":
        return cls(status=TaskStatus.READY, token=token)

    @classmethod
    def failed(cls, error: Optional[str] = None) -> "TaskResult":
        return cls(status=TaskStatus.FAILED, error=error)


@dataclass
class ChallengeInfo:
    """What the detector found on a page."""
    found: bool
    captcha_type: CaptchaType = CaptchaType.UNKNOWN
    site_key: Optional[str] = None
    selector: Optional[str] = None

    @classmethod
    def not_found(cls) -> "ChallengeInfo":
        return cls(found=False)


class SolveStatus(Enum):
    """Overall outcome reported to the caller."""
    SOLVED = "solved"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class CaptchaSolveResult:
    """Result from CAPTCHA solving attempt."""
    success: bool
    status: SolveStatus
    captcha_type: Optional[CaptchaType] = None
    token: Optional[str] = None
    error: Optional[str] = None
    task_id: Optional[str] = None
    injected: bool = False
    solve_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "captcha_type": self.captcha_type.value if self.captcha_type else None,
            "token": self.token,
            "error": self.error,
            "task_id": self.task_id,
            "injected": self.injected,
            "solve_time_seconds": self.solve_time_seconds
        }
