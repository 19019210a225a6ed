from pydantic import BaseModel


class ChatRequest(BaseModel):
    question: str
    session_id: str | None = None


class ChatResponse(BaseModel):
    answer: str
    product_detected: str | None
    total_matches: int  # number of retrieved chunks
    session_id: str


class SessionStats(BaseModel):
    active_sessions: int
    total_messages: int


class ProductList(BaseModel):
    brand: str
    products: list[str]
    total: int
