"""Pipeline execution modules for CV screening."""

from .runner import ScreeningPipelineRunner
from .service import ScreeningService
from .dto import ScreeningResultDTO

__all__ = ['ScreeningPipelineRunner', 'ScreeningService', 'ScreeningResultDTO']
