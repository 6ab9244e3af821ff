from datetime import datetime

from pydantic import Field

from teachkit.schemas._base import CamelModel


class GenerateIn(CamelModel):
    # Validated by the coordinator so that bad input maps onto its error taxonomy
    topic: str | None = None
    payment_intent_id: str | None = None


class PackageFiles(CamelModel):
    presentation: str | None = None
    audio: str | None = None
    worksheet: str | None = None
    answer_sheet: str | None = None
    images: list[str] = Field(default_factory=list)


class GenerateOut(CamelModel):
    files: PackageFiles
    package_id: str | None
    generation_id: str


class GenerateAcceptedOut(CamelModel):
    payment_intent_id: str
    status: str


class GenerationStatusOut(CamelModel):
    payment_intent_id: str
    status: str  # unused, running, completed, failed
    generation_id: str | None = None
    used_at: datetime | None = None
