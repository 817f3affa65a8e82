from pydantic import BaseModel


class TeamMemberFact(BaseModel):
    name: str
    role: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin: str | None = None
    sourceUrl: str
    signals: list[str] = []  # has_image | has_email | has_linkedin | has_role | legal_notice | llm
