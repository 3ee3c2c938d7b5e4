from typing import Optional
from pydantic import BaseModel


class UssdRequest(BaseModel):
    sessionId: str = ""
    serviceCode: str = ""
    phoneNumber: str = ""
    # Cumulative answers joined by '*'; empty on the first request of a session.
    text: Optional[str] = ""
