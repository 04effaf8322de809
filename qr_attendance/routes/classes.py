# qr_attendance/routes/classes.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status

from qr_attendance.core.dependencies import get_class_service, get_current_teacher, get_report_service
from qr_attendance.schemas.classes import ClassCreateRequest, ClassReportResponse, ClassResponse
from qr_attendance.services import AttendanceReportService, ClassService, report_csv

router = APIRouter()


@router.post("", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreateRequest,
    teacher_id: Optional[str] = Depends(get_current_teacher),
    class_service: ClassService = Depends(get_class_service)
) -> ClassResponse:
    class_ = await class_service.create_class(
        payload.name, payload.code, payload.schedule, payload.description, teacher_id
    )
    return ClassResponse.model_validate(class_)


@router.get("", response_model=List[ClassResponse])
async def list_classes(
    teacher_id: Optional[str] = Depends(get_current_teacher),
    class_service: ClassService = Depends(get_class_service)
) -> List[ClassResponse]:
    """Classes of the calling teacher, newest first"""
    classes = await class_service.list_classes(teacher_id)
    return [ClassResponse.model_validate(c) for c in classes]


@router.get("/{class_id}", response_model=ClassResponse, dependencies=[Depends(get_current_teacher)])
async def get_class(
    class_id: str,
    class_service: ClassService = Depends(get_class_service)
) -> ClassResponse:
    class_ = await class_service.get_class(class_id)
    return ClassResponse.model_validate(class_)


@router.delete(
    "/{class_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(get_current_teacher)]
)
async def delete_class(
    class_id: str,
    class_service: ClassService = Depends(get_class_service)
) -> Response:
    await class_service.delete_class(class_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{class_id}/report",
    response_model=ClassReportResponse,
    dependencies=[Depends(get_current_teacher)]
)
async def class_report(
    class_id: str,
    reports: AttendanceReportService = Depends(get_report_service)
) -> ClassReportResponse:
    """Per-student attendance rates and per-session attendee counts"""
    report = await reports.class_report(class_id)
    return ClassReportResponse.model_validate(report)


@router.get("/{class_id}/report.csv", dependencies=[Depends(get_current_teacher)])
async def class_report_csv(
    class_id: str,
    reports: AttendanceReportService = Depends(get_report_service)
) -> Response:
    report = await reports.class_report(class_id)
    filename = reports.export_filename(report)
    return Response(
        content=report_csv(report).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
