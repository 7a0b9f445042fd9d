from pydantic import BaseModel


class Volunteer(BaseModel):
    """Canonical volunteer view built from a `Users` document."""
    user_id: str
    name: str = "Unknown"
    email: str = ""
    phone: str = ""
    role: str = "volunteer"
    masjid: str = ""
    cluster: str = ""
    is_hafiz: bool = False
