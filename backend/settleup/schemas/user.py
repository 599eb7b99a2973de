from datetime import datetime

from settleup.schemas.common import Envelope, IDModel, Region


class UserRead(IDModel):
    email: str
    name: str
    company_name: str
    role: str
    region: Region
    last_login_at: datetime | None = None


class UserSummary(IDModel):
    email: str
    name: str
    company_name: str


class UserEnvelope(Envelope):
    user: UserRead


class RegionEnvelope(Envelope):
    region: Region
