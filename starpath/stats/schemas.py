from pydantic import BaseModel


class ChildStatsResponse(BaseModel):
    """Schema for a child's accumulated rewards."""

    child_id: str
    total_stars: int = 0
    total_badges: int = 0
    badges: list[str] = []
