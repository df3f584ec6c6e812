from pydantic import BaseModel


class WorkerRunResponse(BaseModel):
    status: str
    fetched: int
    processed: int
    relevant: int
    forwarded: int
    duplicates: int
    failed: int
