from .requests import ClassCreateRequest
from .responses import ClassResponse, ClassReportResponse, StudentStatsResponse, SessionStatsResponse

__all__ = [
    'ClassCreateRequest',
    'ClassResponse',
    'ClassReportResponse',
    'StudentStatsResponse',
    'SessionStatsResponse',
]
