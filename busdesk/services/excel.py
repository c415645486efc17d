import logging

from busdesk.services.api import ApiClient, ApiError

logger = logging.getLogger(__name__)

EXPORTS = ("users", "tickets", "schedules", "destinations", "transactions")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ExcelService:
    @staticmethod
    async def download(api: ApiClient, export: str) -> bytes:
        """Fetch one of the backend's Excel exports as raw bytes."""
        if export not in EXPORTS:
            raise ApiError(f"Unknown export: {export}")
        response = await api.get(f"/excel/{export}")
        if not response.is_success:
            logger.error("Excel export %s failed with status %s", export, response.status_code)
            raise ApiError("Failed to download the data", status_code=response.status_code)
        return response.content
