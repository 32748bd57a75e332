from cadastre.repositories.documents import InMemoryDocumentsRepository
from cadastre.repositories.jobs import InMemoryJobsRepository
from cadastre.repositories.pillar_systems import InMemoryPillarSystemsRepository
from cadastre.repositories.pillars import InMemoryPillarsRepository
from cadastre.repositories.surveyors import InMemorySurveyorsRepository
from cadastre.repositories.workflow_steps import InMemoryWorkflowStepsRepository

__all__ = [
    "InMemoryDocumentsRepository",
    "InMemoryJobsRepository",
    "InMemoryPillarSystemsRepository",
    "InMemoryPillarsRepository",
    "InMemorySurveyorsRepository",
    "InMemoryWorkflowStepsRepository",
]
