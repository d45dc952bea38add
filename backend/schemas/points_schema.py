from pydantic import BaseModel, Field

class AwardPointsRequest(BaseModel):
    video_id: int = Field(alias="videoId", gt=0)

    class Config:
        populate_by_name = True

class WatchProgressUpdate(BaseModel):
    watched_seconds: int = Field(ge=0)
    completed: bool = False
