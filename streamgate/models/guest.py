"""Guest session model for unauthenticated playback."""

from pydantic import BaseModel, Field


class GuestSession(BaseModel):
    """Countdown state for one unauthenticated playback attempt."""

    is_guest: bool = Field(default=True, description="Viewer is not signed in")
    elapsed_seconds: int = Field(default=0, ge=0, description="Active playback seconds counted")
    limit_seconds: int = Field(default=60, gt=0, description="Allowance in seconds")
    reached_limit: bool = Field(default=False, description="Allowance used up")

    @property
    def time_left(self) -> int:
        return max(self.limit_seconds - self.elapsed_seconds, 0)
